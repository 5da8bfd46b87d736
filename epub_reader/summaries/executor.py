"""Retry-aware execution of a single summarization call."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence

import httpx

from ..utils.logging import configure_logging
from .errors import ExhaustedRetriesError, FatalRequestError, RetryableRequestError
from .models import RequestAttempt
from .transport import ChatRequest, ChatTransport, TransportResponse

LOGGER = configure_logging().getChild(__name__)

MISSING_CONTENT_PLACEHOLDER = "No summary was returned."

AttemptCallback = Callable[[RequestAttempt], None]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget, backoff base and per-attempt deadline."""

    max_retries: int = 3
    backoff_s: float = 2.0
    timeout_s: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Return the wait before the attempt following ``attempt``."""

        return self.backoff_s * (2 ** (attempt - 1))

    def with_timeout(self, timeout_s: float) -> "RetryPolicy":
        return RetryPolicy(max_retries=self.max_retries, backoff_s=self.backoff_s, timeout_s=timeout_s)


def extract_content(payload: Any) -> str:
    """Return ``choices[0].message.content`` or the placeholder text."""

    if not isinstance(payload, Mapping):
        return MISSING_CONTENT_PLACEHOLDER
    choices = payload.get("choices")
    if not isinstance(choices, Sequence) or not choices:
        return MISSING_CONTENT_PLACEHOLDER
    first = choices[0]
    message = first.get("message") if isinstance(first, Mapping) else None
    content = message.get("content") if isinstance(message, Mapping) else None
    if not isinstance(content, str) or not content.strip():
        return MISSING_CONTENT_PLACEHOLDER
    return content


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class RequestExecutor:
    """Issue a chat request with timeout, retry and exponential backoff.

    Retryable failures (deadline expiry, connection errors, HTTP 429 and 5xx)
    are retried until ``policy.max_retries`` attempts have been made; each
    wait is announced through ``on_attempt`` before sleeping. Any other HTTP
    failure raises :class:`FatalRequestError` at once, and unexpected
    exceptions propagate unchanged.
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        credential: str,
        policy: RetryPolicy | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._transport = transport
        self._credential = credential
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep

    def with_policy(self, policy: RetryPolicy) -> "RequestExecutor":
        return RequestExecutor(
            self._transport,
            credential=self._credential,
            policy=policy,
            sleep=self._sleep,
        )

    async def execute(
        self,
        request: ChatRequest,
        context: str = "",
        on_attempt: AttemptCallback | None = None,
    ) -> str:
        """Return the response text for ``request``."""

        attempt = 1
        while True:
            try:
                text = await self._attempt(request, context, attempt)
            except RetryableRequestError as exc:
                if attempt >= self.policy.max_retries:
                    LOGGER.warning(
                        "[summaries] %s exhausted %s attempts: %s",
                        context or "request",
                        attempt,
                        exc.reason,
                    )
                    raise ExhaustedRetriesError(attempt, exc) from exc
                delay = self.policy.delay_for(attempt)
                LOGGER.info(
                    "[summaries] %s attempt %s/%s failed (%s); retrying in %.1fs",
                    context or "request",
                    attempt,
                    self.policy.max_retries,
                    exc.reason,
                    delay,
                )
                if on_attempt is not None:
                    on_attempt(
                        RequestAttempt(
                            attempt=attempt,
                            delay_s=delay,
                            reason=exc.reason,
                            max_attempts=self.policy.max_retries,
                        )
                    )
                await self._sleep(delay)
                attempt += 1
                continue
            except FatalRequestError as exc:
                LOGGER.error(
                    "[summaries] %s failed without retry: %s",
                    context or "request",
                    exc.reason,
                )
                raise
            LOGGER.debug("[summaries] %s succeeded on attempt %s", context or "request", attempt)
            return text

    async def _attempt(self, request: ChatRequest, context: str, attempt: int) -> str:
        timeout = self.policy.timeout_s
        LOGGER.debug("[summaries] %s attempt %s timeout=%ss", context or "request", attempt, timeout)
        try:
            response = await asyncio.wait_for(
                self._transport.call(request, credential=self._credential, timeout_s=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise RetryableRequestError(f"Timed out after {timeout:g}s") from exc
        except httpx.TimeoutException as exc:
            raise RetryableRequestError(f"Timed out after {timeout:g}s") from exc
        except httpx.TransportError as exc:
            raise RetryableRequestError(f"Network error: {exc}") from exc
        return self._classify(response)

    @staticmethod
    def _classify(response: TransportResponse) -> str:
        if response.ok:
            return extract_content(response.payload)
        reason = response.error_message()
        if is_retryable_status(response.status_code):
            raise RetryableRequestError(reason, status_code=response.status_code)
        raise FatalRequestError(reason, status_code=response.status_code)


__all__ = [
    "MISSING_CONTENT_PLACEHOLDER",
    "RequestExecutor",
    "RetryPolicy",
    "extract_content",
    "is_retryable_status",
]
