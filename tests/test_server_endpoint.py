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
from typing import Any, AsyncIterator

import httpx
import pytest
import respx
from fastapi.testclient import TestClient
from nim_proxy.routers.chat import chat_completions, relay_stream
from nim_proxy.routing import DEFAULT_UPSTREAM_MODEL
from nim_proxy.runtime_config import ConfigStore
from nim_proxy.schemas import ChatCompletionRequest
from nim_proxy.server import config_store

UPSTREAM_URL = "https://nim.test/v1/chat/completions"
MESSAGES = [{"role": "user", "content": "hello"}]

COMPLETION = {
    "id": "cmpl-upstream",
    "object": "chat.completion",
    "created": 1700000000,
    "model": DEFAULT_UPSTREAM_MODEL,
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello there!", "reasoning_content": "Greet back."},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 9, "completion_tokens": 12, "total_tokens": 21},
}

SSE_BODY = (
    b'data: {"id":"c1","choices":[{"index":0,"delta":{"role":"assistant","reasoning_content":"Think"}}]}\n\n'
    b'data: {"id":"c1","choices":[{"index":0,"delta":{"content":"Hi"}}]}\n\n'
    b": keep-alive\n\n"
    b"data: {broken\n\n"
    b'data: {"id":"c1","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}\n\n'
    b"data: [DONE]\n\n"
)


def _data_lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line]


# --- configuration errors ---


def test_missing_credential_rejected_without_upstream_call(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NIM_API_KEY", raising=False)

    with respx.mock(assert_all_called=False) as router:
        route = router.post(UPSTREAM_URL).mock(return_value=httpx.Response(200, json=COMPLETION))
        response = client.post("/v1/chat/completions", json={"model": "gpt-4", "messages": MESSAGES})

        assert not route.called

    assert response.status_code == 500
    assert response.json() == {
        "error": {
            "message": "NIM_API_KEY environment variable not set",
            "type": "configuration_error",
            "code": 500,
        }
    }


def test_missing_messages_is_caller_error(client: TestClient) -> None:
    with respx.mock(assert_all_called=False) as router:
        route = router.post(UPSTREAM_URL)
        response = client.post("/v1/chat/completions", json={"model": "gpt-4"})
        assert not route.called

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "invalid_request_error"
    assert error["code"] == 400
    assert "messages" in error["message"]


# --- non-streaming ---


def test_non_streaming_completion(client: TestClient, respx_mock: Any) -> None:
    route = respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(200, json=COMPLETION))

    response = client.post(
        "/v1/chat/completions",
        json={"model": "gpt-4o", "messages": MESSAGES, "stream": False, "top_p": 0.5},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["model"] == "gpt-4o"
    assert data["object"] == "chat.completion"
    assert data["id"].startswith("chatcmpl-")
    assert data["choices"][0]["message"] == {"role": "assistant", "content": "Hello there!"}
    assert data["usage"] == COMPLETION["usage"]

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer nvapi-test-key"
    body = json.loads(request.content)
    assert body == {
        "model": DEFAULT_UPSTREAM_MODEL,
        "messages": MESSAGES,
        "temperature": 0.7,
        "max_tokens": 4096,
        "stream": False,
        "top_p": 0.5,
    }


def test_non_streaming_shows_reasoning(client: TestClient, respx_mock: Any) -> None:
    config_store.update({"showReasoning": True})
    respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(200, json=COMPLETION))

    response = client.post("/v1/chat/completions", json={"model": "gpt-4", "messages": MESSAGES, "stream": False})

    assert response.json()["choices"][0]["message"]["content"] == "<think>\nGreet back.\n</think>\n\nHello there!"


def test_streaming_default_follows_config(client: TestClient, respx_mock: Any) -> None:
    config_store.update({"streamingEnabled": False, "enableThinking": True, "maxTokens": 100})
    route = respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(200, json=COMPLETION))

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.json()["model"] == DEFAULT_UPSTREAM_MODEL
    body = json.loads(route.calls.last.request.content)
    assert body["stream"] is False
    assert body["max_tokens"] == 100
    assert body["chat_template_kwargs"] == {"thinking": True}


def test_sampling_fields_forwarded_as_sent(client: TestClient, respx_mock: Any) -> None:
    route = respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(200, json=COMPLETION))

    response = client.post(
        "/v1/chat/completions",
        json={
            "messages": MESSAGES,
            "stream": False,
            "temperature": "hot",
            "max_tokens": 100.5,
            "top_p": "0.9",
            "presence_penalty": 1,
        },
    )

    assert response.status_code == 200
    body = json.loads(route.calls.last.request.content)
    assert body["temperature"] == "hot"
    assert body["max_tokens"] == 100.5
    assert body["top_p"] == "0.9"
    assert body["presence_penalty"] == 1
    assert isinstance(body["presence_penalty"], int)


def test_non_string_upstream_content_is_tolerated(client: TestClient, respx_mock: Any) -> None:
    upstream = {
        "choices": [
            {
                "index": 0,
                "message": {"role": ["assistant"], "content": [{"type": "text", "text": "x"}]},
                "finish_reason": 3,
            }
        ]
    }
    respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(200, json=upstream))

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES, "stream": False})

    assert response.status_code == 200
    assert response.json()["choices"] == [
        {"index": 0, "message": {"role": "assistant", "content": ""}, "finish_reason": None}
    ]


# --- upstream errors ---


def test_upstream_error_status_is_mirrored(client: TestClient, respx_mock: Any) -> None:
    respx_mock.post(UPSTREAM_URL).mock(
        return_value=httpx.Response(422, json={"error": {"message": "max_tokens too large"}})
    )

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES, "stream": False})

    assert response.status_code == 422
    assert response.json() == {"error": {"message": "max_tokens too large", "type": "api_error", "code": 422}}


def test_upstream_network_error_is_500(client: TestClient, respx_mock: Any) -> None:
    respx_mock.post(UPSTREAM_URL).mock(side_effect=httpx.ConnectError("Name or service not known"))

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES, "stream": True})

    assert response.status_code == 500
    assert response.json() == {"error": {"message": "Name or service not known", "type": "api_error", "code": 500}}


def test_upstream_stream_error_status(client: TestClient, respx_mock: Any) -> None:
    respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(401, json={"error": {"message": "Unauthorized"}}))

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES, "stream": True})

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Unauthorized"


def test_no_retries(client: TestClient, respx_mock: Any) -> None:
    route = respx_mock.post(UPSTREAM_URL).mock(return_value=httpx.Response(500, json={"error": {"message": "boom"}}))

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES, "stream": False})

    assert response.status_code == 500
    assert route.call_count == 1


# --- streaming ---


def test_streaming_hides_reasoning(client: TestClient, respx_mock: Any) -> None:
    route = respx_mock.post(UPSTREAM_URL).mock(
        return_value=httpx.Response(200, content=SSE_BODY, headers={"Content-Type": "text/event-stream"})
    )

    response = client.post("/v1/chat/completions", json={"model": "gpt-4", "messages": MESSAGES, "stream": True})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert json.loads(route.calls.last.request.content)["stream"] is True

    lines = _data_lines(response.text)
    assert json.loads(lines[0][len("data: ") :])["choices"][0]["delta"] == {"role": "assistant"}
    assert json.loads(lines[1][len("data: ") :])["choices"][0]["delta"] == {"content": "Hi"}
    assert lines[2] == "data: {broken"
    assert json.loads(lines[3][len("data: ") :])["choices"][0]["finish_reason"] == "stop"
    assert lines[4] == "data: [DONE]"
    assert len(lines) == 5
    assert "keep-alive" not in response.text


def test_streaming_shows_reasoning(client: TestClient, respx_mock: Any) -> None:
    config_store.update({"showReasoning": True})
    respx_mock.post(UPSTREAM_URL).mock(
        return_value=httpx.Response(200, content=SSE_BODY, headers={"Content-Type": "text/event-stream"})
    )

    response = client.post("/v1/chat/completions", json={"model": "gpt-4", "messages": MESSAGES, "stream": True})

    first = json.loads(_data_lines(response.text)[0][len("data: ") :])
    assert first["choices"][0]["delta"] == {"role": "assistant", "content": "<think>Think</think>"}


def test_streaming_events_separated_by_blank_line(client: TestClient, respx_mock: Any) -> None:
    respx_mock.post(UPSTREAM_URL).mock(
        return_value=httpx.Response(200, content=b"data: [DONE]\n\n", headers={"Content-Type": "text/event-stream"})
    )

    response = client.post("/v1/chat/completions", json={"messages": MESSAGES, "stream": True})

    assert response.text == "data: [DONE]\n\n"


# --- relay_stream ---


class ChunkedStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


async def _relay(stream: ChunkedStream, store: ConfigStore) -> list[str]:
    response = httpx.Response(200, stream=stream)
    return [item async for item in relay_stream(response, store)]


@pytest.mark.anyio
async def test_relay_reassembles_split_frames() -> None:
    text = 'data: {"choices":[{"delta":{"reasoning_content":"é","content":"ü"}}]}\n\ndata: [DONE]\n\n'
    encoded = text.encode("utf-8")
    chunks = [encoded[i : i + 3] for i in range(0, len(encoded), 3)]
    store = ConfigStore()
    store.update({"showReasoning": True})
    stream = ChunkedStream(chunks)

    out = await _relay(stream, store)

    assert out[0] == 'data: {"choices":[{"delta":{"content":"<think>é</think>\\n\\nü"}}]}\n\n'
    assert out[1] == "data: [DONE]\n\n"
    assert stream.closed


@pytest.mark.anyio
async def test_relay_stops_after_done() -> None:
    stream = ChunkedStream([b"data: [DONE]\n\n", b'data: {"late": true}\n\n'])
    assert await _relay(stream, ConfigStore()) == ["data: [DONE]\n\n"]
    assert stream.closed


@pytest.mark.anyio
async def test_relay_ends_quietly_on_upstream_error() -> None:
    stream = ChunkedStream([b'data: {"choices":[]}\n\n', b"data: {\"cho"], error=httpx.ReadError("reset"))

    out = await _relay(stream, ConfigStore())

    assert out == ['data: {"choices":[]}\n\n']
    assert stream.closed


@pytest.mark.anyio
async def test_relay_flushes_unterminated_last_line() -> None:
    stream = ChunkedStream([b'data: {"a":1}\n\ndata: [DO', b"NE]"])
    assert await _relay(stream, ConfigStore()) == ['data: {"a":1}\n\n', "data: [DONE]\n\n"]


@pytest.mark.anyio
async def test_relay_closes_upstream_when_caller_goes_away() -> None:
    stream = ChunkedStream([b'data: {"a":1}\n\n', b'data: {"b":2}\n\n'])
    relay = relay_stream(httpx.Response(200, stream=stream), ConfigStore())

    assert await relay.__anext__() == 'data: {"a":1}\n\n'
    await relay.aclose()

    assert stream.closed


class StubUpstream:
    def __init__(self, response: httpx.Response):
        self.response = response

    async def open_stream(self, body: dict[str, Any], api_key: str) -> httpx.Response:
        return self.response


@pytest.mark.anyio
async def test_stream_response_closes_upstream_without_iteration() -> None:
    stream = ChunkedStream([b"data: [DONE]\n\n"])
    upstream = StubUpstream(httpx.Response(200, stream=stream))

    result = await chat_completions(
        ChatCompletionRequest(messages=MESSAGES, stream=True),
        ConfigStore(),
        upstream,  # type: ignore[arg-type]
    )

    assert result.background is not None
    await result.background()
    assert stream.closed
