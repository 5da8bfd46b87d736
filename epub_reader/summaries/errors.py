"""Exception hierarchy for the summarization pipeline."""

from __future__ import annotations


class SummaryError(RuntimeError):
    """Base class for summarization failures."""


class NoCredentialError(SummaryError):
    """Raised when no API credential was supplied; callers abort silently."""

    def __init__(self, message: str = "No API key supplied") -> None:
        super().__init__(message)


class RequestError(SummaryError):
    """A single remote call failed."""

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class FatalRequestError(RequestError):
    """Non-retryable failure (4xx other than 429)."""


class RetryableRequestError(RequestError):
    """Timeout, rate limit or server failure; eligible for another attempt."""


class ExhaustedRetriesError(SummaryError):
    """A retryable failure persisted past the retry budget."""

    def __init__(self, attempts: int, last_error: RequestError) -> None:
        super().__init__(f"Request failed after {attempts} attempts: {last_error.reason}")
        self.attempts = attempts
        self.last_error = last_error


class EmptyChapterTextError(SummaryError):
    """The chapter has no text to summarize."""


class NoChaptersError(SummaryError):
    """The book has nothing to summarize."""


__all__ = [
    "EmptyChapterTextError",
    "ExhaustedRetriesError",
    "FatalRequestError",
    "NoChaptersError",
    "NoCredentialError",
    "RequestError",
    "RetryableRequestError",
    "SummaryError",
]
