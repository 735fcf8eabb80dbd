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

import json
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Union

"""
Server-sent event framing for the upstream token stream.
Reassembles lines split across network reads and tags each one.
"""

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


class SSELineBuffer:
    """
    Accumulates raw upstream bytes and hands out complete lines.

    Splitting happens on the byte buffer before decoding, so a UTF-8 character cut in
    half by a read boundary is only decoded once both halves have arrived. The 0x0A
    byte never occurs inside a multi-byte UTF-8 sequence, which makes byte-level
    splitting safe.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[str]:
        """
        Appends a chunk and returns every line it completed, in arrival order.

        Args:
            chunk (bytes): The next raw read from the upstream connection.

        Returns:
            list[str]: Complete lines without their terminating newline.
        """
        self._buffer.extend(chunk)
        *complete, rest = self._buffer.split(b"\n")
        self._buffer = bytearray(rest)
        return [self._decode(raw) for raw in complete]

    def flush(self) -> list[str]:
        """
        Returns the trailing partial line once the stream has ended (empty list if none).
        """
        if not self._buffer:
            return []
        line = self._decode(bytes(self._buffer))
        self._buffer.clear()
        return [line]

    @staticmethod
    def _decode(raw: bytes | bytearray) -> str:
        line = bytes(raw).decode("utf-8", errors="replace")
        if line.endswith("\r"):
            line = line[:-1]
        return line


async def iter_sse_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """
    Lazily turns an upstream byte stream into SSE text lines.

    Args:
        chunks (AsyncIterable[bytes]): Raw reads, split at arbitrary positions.

    Yields:
        str: Each line exactly once, never before it has been fully received.
    """
    buffer = SSELineBuffer()
    async for chunk in chunks:
        for line in buffer.feed(chunk):
            yield line
    for line in buffer.flush():
        yield line


@dataclass(frozen=True)
class NonDataLine:
    """Blank separators, comments and non-data fields."""

    line: str


@dataclass(frozen=True)
class DoneFrame:
    """The `data: [DONE]` stream terminator."""

    line: str


@dataclass(frozen=True)
class EventFrame:
    """A data line whose payload decoded to a JSON object."""

    line: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class RawDataLine:
    """A data line whose payload could not be used; forwarded untouched."""

    line: str


StreamFrame = Union[NonDataLine, DoneFrame, EventFrame, RawDataLine]


def is_done_line(line: str) -> bool:
    """True only for a data line whose whole payload, trimmed, is the [DONE] marker."""
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX) :].strip() == DONE_MARKER


def classify_line(line: str) -> StreamFrame:
    if not line.startswith(DATA_PREFIX):
        return NonDataLine(line)
    if is_done_line(line):
        return DoneFrame(line)

    data = line[len(DATA_PREFIX) :]

    try:
        payload = json.loads(data)
    except ValueError:
        return RawDataLine(line)

    if not isinstance(payload, dict):
        return RawDataLine(line)
    return EventFrame(line, payload)


def format_data_line(payload: dict[str, Any]) -> str:
    return f"{DATA_PREFIX}{json.dumps(payload, ensure_ascii=False, separators=(',', ':'))}"
