# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

import uuid
from typing import Any, AsyncIterator

import anyio
import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from nim_proxy.config import get_settings
from nim_proxy.dependencies import ConfigStoreDep, UpstreamDep
from nim_proxy.errors import ConfigurationError
from nim_proxy.runtime_config import ConfigStore
from nim_proxy.schemas import ChatCompletionRequest
from nim_proxy.sse import DATA_PREFIX, is_done_line, iter_sse_lines
from nim_proxy.translator import build_upstream_request, translate_completion, translate_stream_line
from nim_proxy.utils.logger import logger

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def relay_stream(response: httpx.Response, store: ConfigStore) -> AsyncIterator[str]:
    """
    Forwards an open upstream SSE response line by line, rewriting each data line.

    Lines are emitted in upstream order as soon as they are complete. The runtime
    config is read per line, so a config change applies to streams already running.
    Upstream errors end the stream without an error frame; the upstream response is
    always closed, including when the caller disconnects.

    Args:
        response (httpx.Response): The open upstream streaming response.
        store (ConfigStore): The shared runtime config store.

    Yields:
        str: Rewritten `data:` lines followed by a blank line.
    """
    try:
        async for line in iter_sse_lines(response.aiter_bytes()):
            if not line.startswith(DATA_PREFIX):
                continue
            yield f"{translate_stream_line(line, store.current.show_reasoning)}\n\n"
            if is_done_line(line):
                break
        if store.current.log_requests:
            logger.info("Stream completed")
    except httpx.HTTPError as e:
        logger.error(f"Stream error: {e}")
    finally:
        with anyio.CancelScope(shield=True):
            await response.aclose()


@router.post("/v1/chat/completions", status_code=200)
async def chat_completions(
    body: ChatCompletionRequest,
    store: ConfigStoreDep,
    upstream: UpstreamDep,
) -> Any:
    """
    Proxies a chat completion to the upstream API, remapping the model and rewriting
    the reasoning channel of the response.

    Args:
        body (ChatCompletionRequest): The parsed request body.
        store (ConfigStore): Injected runtime config store.
        upstream (UpstreamClient): Injected upstream client.

    Returns:
        Any: A chat.completion JSON body or a StreamingResponse (SSE).

    Raises:
        ConfigurationError: If no upstream credential is configured.
        UpstreamError: If the upstream call fails.
    """
    settings = get_settings()
    if settings.NIM_API_KEY is None or not settings.api_key_configured:
        raise ConfigurationError("NIM_API_KEY environment variable not set")
    api_key = settings.NIM_API_KEY.get_secret_value()

    config = store.current
    upstream_body = build_upstream_request(body, config)
    stream = upstream_body["stream"]

    with logger.contextualize(request_id=uuid.uuid4().hex[:12]):
        if config.log_requests:
            logger.info(f"Request: {body.model} -> {upstream_body['model']}")
            logger.info(f"Messages: {len(body.messages)} messages, Stream: {stream}")

        if stream:
            response = await upstream.open_stream(upstream_body, api_key)
            return StreamingResponse(
                relay_stream(response, store),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
                # Closes upstream even if the caller leaves before the first chunk
                background=BackgroundTask(response.aclose),
            )

        data = await upstream.complete(upstream_body, api_key)
        result = translate_completion(data, body.model, store.current.show_reasoning)
        if store.current.log_requests:
            logger.info("Response completed")
        return JSONResponse(content=result)
