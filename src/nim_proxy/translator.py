# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from __future__ import annotations

import time
import uuid
from typing import Any, Optional

from nim_proxy.routing import resolve_upstream_model
from nim_proxy.runtime_config import RuntimeConfig
from nim_proxy.schemas import ChatCompletionRequest, ChatCompletionResponse, Choice, ChoiceMessage, Usage
from nim_proxy.sse import EventFrame, classify_line, format_data_line

"""
Request and response rewriting between the caller contract and the upstream API.
"""

PASSTHROUGH_FIELDS = ("top_p", "frequency_penalty", "presence_penalty")

# Upstream extension asking the chat template to emit reasoning traces
THINKING_EXTENSION = {"chat_template_kwargs": {"thinking": True}}


def build_upstream_request(body: ChatCompletionRequest, config: RuntimeConfig) -> dict[str, Any]:
    """
    Builds the upstream request body from the caller's body and the live config.

    Args:
        body (ChatCompletionRequest): The parsed caller request.
        config (RuntimeConfig): The runtime config snapshot for this request.

    Returns:
        dict[str, Any]: The JSON body to send upstream.
    """
    upstream: dict[str, Any] = {
        "model": resolve_upstream_model(body.model),
        "messages": body.messages,
        "temperature": body.temperature if body.temperature is not None else config.temperature,
        # max_tokens of 0 is never valid, so it falls back like an absent value
        "max_tokens": body.max_tokens or config.max_tokens,
        "stream": body.stream if body.stream is not None else config.streaming_enabled,
    }

    for field in PASSTHROUGH_FIELDS:
        value = getattr(body, field)
        if value is not None:
            upstream[field] = value

    if config.enable_thinking:
        upstream.update(THINKING_EXTENSION)

    return upstream


def wrap_reasoning(reasoning: str, content: Optional[str]) -> str:
    wrapped = f"<think>{reasoning}</think>"
    if not content:
        return wrapped
    return f"{wrapped}\n\n{content}"


def merge_reasoning_delta(delta: dict[str, Any], show_reasoning: bool) -> dict[str, Any]:
    """
    Rewrites one streaming delta in place. `reasoning_content` is always removed;
    when show_reasoning is on its text is moved into `content` inside <think> tags.
    """
    if "reasoning_content" not in delta:
        return delta

    reasoning = delta.pop("reasoning_content")
    if show_reasoning and isinstance(reasoning, str) and reasoning:
        delta["content"] = wrap_reasoning(reasoning, delta.get("content"))
    return delta


def translate_stream_line(line: str, show_reasoning: bool) -> str:
    """
    Translates a single upstream SSE line.

    Non-data lines, the [DONE] terminator and data lines that do not parse as a JSON
    object are returned unchanged. Parsed events are rewritten and re-serialized.

    Args:
        line (str): One complete upstream line, without its newline.
        show_reasoning (bool): Whether reasoning text is merged into content.

    Returns:
        str: The line to write to the caller.
    """
    frame = classify_line(line)
    if not isinstance(frame, EventFrame):
        return frame.line

    payload = frame.payload
    choices = payload.get("choices")
    if isinstance(choices, list):
        for choice in choices:
            delta = choice.get("delta") if isinstance(choice, dict) else None
            if isinstance(delta, dict):
                merge_reasoning_delta(delta, show_reasoning)
    return format_data_line(payload)


def _string_or(value: Any, default: Optional[str]) -> Optional[str]:
    return value if isinstance(value, str) and value else default


def _completion_content(message: dict[str, Any], show_reasoning: bool) -> str:
    content = message.get("content")
    if not isinstance(content, str):
        content = ""
    reasoning = message.get("reasoning_content")
    if show_reasoning and isinstance(reasoning, str) and reasoning:
        content = f"<think>\n{reasoning}\n</think>\n\n{content}"
    return content


def translate_completion(upstream: dict[str, Any], caller_model: Optional[str], show_reasoning: bool) -> dict[str, Any]:
    """
    Rewrites a buffered upstream chat completion into the caller-facing shape.

    Args:
        upstream (dict[str, Any]): The decoded upstream JSON body.
        caller_model (Optional[str]): The model name the caller asked for.
        show_reasoning (bool): Whether reasoning text is merged into content.

    Returns:
        dict[str, Any]: A chat.completion object with a fresh id and timestamp.
    """
    choices = []
    for position, choice in enumerate(upstream.get("choices") or []):
        if not isinstance(choice, dict):
            continue
        message = choice.get("message") if isinstance(choice.get("message"), dict) else {}
        choices.append(
            Choice(
                index=choice["index"] if isinstance(choice.get("index"), int) else position,
                message=ChoiceMessage(
                    role=_string_or(message.get("role"), "assistant"),
                    content=_completion_content(message, show_reasoning),
                ),
                finish_reason=_string_or(choice.get("finish_reason"), None),
            )
        )

    usage = upstream.get("usage")
    response = ChatCompletionResponse(
        id=f"chatcmpl-{uuid.uuid4().hex}",
        created=int(time.time()),
        model=caller_model if caller_model else resolve_upstream_model(caller_model),
        choices=choices,
        usage=usage if isinstance(usage, dict) else Usage().model_dump(),
    )
    return response.model_dump()
