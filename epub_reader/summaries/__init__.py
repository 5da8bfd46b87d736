"""AI summarization pipeline: Markdown renderer, resilient executor, book orchestrator."""

from .errors import (
    EmptyChapterTextError,
    ExhaustedRetriesError,
    FatalRequestError,
    NoChaptersError,
    NoCredentialError,
    RequestError,
    RetryableRequestError,
    SummaryError,
)
from .executor import RequestExecutor, RetryPolicy
from .markdown import render_markdown
from .models import (
    BookSummary,
    ChapterRef,
    ChapterSummary,
    ChapterSummaryResult,
    ProgressState,
    RequestAttempt,
)
from .orchestrator import summarize_book, summarize_chapter
from .transport import ChatRequest, HttpxChatTransport, TransportResponse

__all__ = [
    "BookSummary",
    "ChapterRef",
    "ChapterSummary",
    "ChapterSummaryResult",
    "ChatRequest",
    "EmptyChapterTextError",
    "ExhaustedRetriesError",
    "FatalRequestError",
    "HttpxChatTransport",
    "NoChaptersError",
    "NoCredentialError",
    "ProgressState",
    "RequestAttempt",
    "RequestError",
    "RequestExecutor",
    "RetryPolicy",
    "RetryableRequestError",
    "SummaryError",
    "TransportResponse",
    "render_markdown",
    "summarize_book",
    "summarize_chapter",
]
