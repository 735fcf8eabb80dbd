# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

import json
from typing import Any, Optional

import httpx

from nim_proxy.errors import UpstreamError, extract_upstream_message
from nim_proxy.utils.logger import logger


def _decode_error_body(content: bytes) -> Any:
    if not content:
        return None
    try:
        return json.loads(content)
    except ValueError:
        return content.decode("utf-8", errors="replace")


def _transport_error(exc: httpx.HTTPError) -> UpstreamError:
    message = str(exc) or type(exc).__name__
    return UpstreamError(message)


class UpstreamClient:
    """
    Async client for the single upstream chat completions endpoint.
    Wraps a shared httpx.AsyncClient; no retries are performed.
    """

    def __init__(self, url: str, timeout: float, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the UpstreamClient instance.

        Args:
            url (str): Full chat completions URL of the upstream API.
            timeout (float): Seconds allowed for each upstream call.
            client (Optional[httpx.AsyncClient]): An external HTTP client.
                                                  If None, a new one is created.
        """
        self.url = url
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    def _build_request(self, body: dict[str, Any], api_key: str) -> httpx.Request:
        return self._client.build_request(
            "POST",
            self.url,
            json=body,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )

    async def complete(self, body: dict[str, Any], api_key: str) -> dict[str, Any]:
        """
        Sends a buffered (non-streaming) chat completion.

        Args:
            body (dict[str, Any]): The upstream request body.
            api_key (str): Bearer credential for the upstream API.

        Returns:
            dict[str, Any]: The decoded upstream JSON body.

        Raises:
            UpstreamError: On non-2xx status, transport failure, timeout or a non-JSON body.
        """
        try:
            response = await self._client.send(self._build_request(body, api_key))
        except httpx.HTTPError as e:
            raise _transport_error(e) from e

        if response.is_error:
            payload = _decode_error_body(response.content)
            logger.debug(f"Upstream returned {response.status_code}: {payload}")
            raise UpstreamError(extract_upstream_message(payload, response.status_code), response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Upstream returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise UpstreamError("Upstream returned an unexpected body")
        return data

    async def open_stream(self, body: dict[str, Any], api_key: str) -> httpx.Response:
        """
        Opens a streaming chat completion.

        The returned response is open and unread; the caller iterates its bytes and
        must close it. Error statuses are read and closed here, before anything is
        sent to the caller.

        Args:
            body (dict[str, Any]): The upstream request body (stream=True).
            api_key (str): Bearer credential for the upstream API.

        Returns:
            httpx.Response: The open upstream response.

        Raises:
            UpstreamError: On non-2xx status, transport failure or timeout.
        """
        try:
            response = await self._client.send(self._build_request(body, api_key), stream=True)
        except httpx.HTTPError as e:
            raise _transport_error(e) from e

        if response.is_error:
            try:
                content = await response.aread()
            except httpx.HTTPError:
                content = b""
            finally:
                await response.aclose()
            payload = _decode_error_body(content)
            logger.debug(f"Upstream returned {response.status_code}: {payload}")
            raise UpstreamError(extract_upstream_message(payload, response.status_code), response.status_code)

        return response
