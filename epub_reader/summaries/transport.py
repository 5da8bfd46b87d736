"""HTTP transport for chat-completion summarization calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

import httpx

from ..config import DEFAULT_OPENAI_BASE_URL
from ..utils.logging import configure_logging

LOGGER = configure_logging().getChild(__name__)


@dataclass(frozen=True, slots=True)
class ChatRequest:
    """A single-turn chat-completion request."""

    model: str
    prompt: str
    reasoning_effort: str | None = None
    max_completion_tokens: int | None = None

    def to_payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": self.prompt}],
        }
        if self.reasoning_effort:
            body["reasoning_effort"] = self.reasoning_effort
        if self.max_completion_tokens:
            body["max_completion_tokens"] = self.max_completion_tokens
        return body


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """Status and decoded body of a completed HTTP exchange."""

    status_code: int
    payload: Any = None
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def error_message(self) -> str:
        """Return the provider's error message, falling back to the status."""

        if isinstance(self.payload, Mapping):
            error = self.payload.get("error")
            if isinstance(error, Mapping) and error.get("message"):
                return f"HTTP {self.status_code}: {error['message']}"
            if isinstance(error, str) and error:
                return f"HTTP {self.status_code}: {error}"
        return f"HTTP {self.status_code}"


class ChatTransport(Protocol):
    """Network capability consumed by :class:`RequestExecutor`."""

    async def call(
        self,
        request: ChatRequest,
        *,
        credential: str,
        timeout_s: float,
    ) -> TransportResponse:  # pragma: no cover - protocol
        ...


class HttpxChatTransport:
    """POST chat completions to an OpenAI-compatible endpoint with ``httpx``."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        client_factory: Callable[[httpx.Timeout], httpx.AsyncClient] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client_factory = client_factory or (lambda timeout: httpx.AsyncClient(timeout=timeout))

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def call(
        self,
        request: ChatRequest,
        *,
        credential: str,
        timeout_s: float,
    ) -> TransportResponse:
        headers = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }
        body = request.to_payload()
        LOGGER.debug(
            "[summaries] POST %s model=%s prompt_chars=%s",
            self.endpoint,
            request.model,
            len(request.prompt),
        )
        async with self._client_factory(httpx.Timeout(timeout_s)) as client:
            response = await client.post(self.endpoint, headers=headers, json=body)
        try:
            payload = response.json()
        except ValueError:
            payload = None
        LOGGER.debug("[summaries] response status=%s", response.status_code)
        return TransportResponse(
            status_code=response.status_code,
            payload=payload,
            text=response.text,
        )


__all__ = ["ChatRequest", "ChatTransport", "HttpxChatTransport", "TransportResponse"]
