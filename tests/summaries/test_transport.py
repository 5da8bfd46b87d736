from __future__ import annotations

import asyncio
import json

import httpx

from epub_reader.summaries.transport import ChatRequest, HttpxChatTransport, TransportResponse


def _transport(handler, base_url: str = "https://llm.example/v1/") -> HttpxChatTransport:
    return HttpxChatTransport(
        base_url=base_url,
        client_factory=lambda timeout: httpx.AsyncClient(
            transport=httpx.MockTransport(handler), timeout=timeout
        ),
    )


def test_posts_chat_completion_payload() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "done"}}]})

    transport = _transport(handler)
    request = ChatRequest(
        model="gpt-5-mini",
        prompt="Summarize",
        reasoning_effort="low",
        max_completion_tokens=2000,
    )
    response = asyncio.run(transport.call(request, credential="sk-abc", timeout_s=5))

    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-abc"
    assert seen["body"] == {
        "model": "gpt-5-mini",
        "messages": [{"role": "user", "content": "Summarize"}],
        "reasoning_effort": "low",
        "max_completion_tokens": 2000,
    }
    assert response.ok
    assert response.payload["choices"][0]["message"]["content"] == "done"


def test_optional_parameters_are_omitted() -> None:
    payload = ChatRequest(model="m", prompt="p").to_payload()

    assert payload == {"model": "m", "messages": [{"role": "user", "content": "p"}]}


def test_non_json_error_body_is_kept_as_text() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    response = asyncio.run(
        _transport(handler).call(ChatRequest(model="m", prompt="p"), credential="k", timeout_s=5)
    )

    assert not response.ok
    assert response.payload is None
    assert "Bad gateway" in response.text
    assert response.error_message() == "HTTP 502"


def test_error_message_prefers_provider_message() -> None:
    response = TransportResponse(
        status_code=401,
        payload={"error": {"message": "Incorrect API key provided"}},
    )

    assert response.error_message() == "HTTP 401: Incorrect API key provided"
    assert TransportResponse(status_code=500, payload={"error": "down"}).error_message() == (
        "HTTP 500: down"
    )
