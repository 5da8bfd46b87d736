"""Prompt builders and per-call configuration for summary requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..config import Settings
from .models import ChapterSummaryResult
from .transport import ChatRequest

TRUNCATION_MARKER = "\n\n[Text truncated]"

_FORMAT_RULES = """
Format the answer with this Markdown only:
- `## ` and `### ` headings
- `**bold**` and `*italic*` emphasis
- `- ` bullets and `1. ` numbered items, nested with two spaces per level
- paragraphs separated by a blank line
Do not use tables, code blocks, links or images.
""".strip()


@dataclass(frozen=True, slots=True)
class CallProfile:
    """Model parameters for one kind of summary call."""

    model: str
    reasoning_effort: str | None
    max_completion_tokens: int
    timeout_s: float

    def request(self, prompt: str) -> ChatRequest:
        return ChatRequest(
            model=self.model,
            prompt=prompt,
            reasoning_effort=self.reasoning_effort,
            max_completion_tokens=self.max_completion_tokens,
        )

    @classmethod
    def chapter_from_settings(cls, settings: Settings) -> "CallProfile":
        return cls(
            model=settings.summary_model,
            reasoning_effort=settings.summary_reasoning_effort,
            max_completion_tokens=settings.summary_chapter_max_tokens,
            timeout_s=settings.summary_chapter_timeout_s,
        )

    @classmethod
    def book_from_settings(cls, settings: Settings) -> "CallProfile":
        return cls(
            model=settings.summary_model,
            reasoning_effort=settings.summary_reasoning_effort,
            max_completion_tokens=settings.summary_book_max_tokens,
            timeout_s=settings.summary_book_timeout_s,
        )


def build_chapter_prompt(title: str, text: str, *, max_chars: int | None = None) -> str:
    """Return the prompt summarizing one chapter."""

    body = text.strip()
    if max_chars is not None and len(body) > max_chars:
        body = body[:max_chars].rstrip() + TRUNCATION_MARKER
    return "\n\n".join(
        [
            f'Summarize the following chapter titled "{title}".',
            "Cover the main events, arguments and ideas in the order they appear. "
            "Start with a short overview paragraph, then list the key points.",
            _FORMAT_RULES,
            "Chapter text:",
            body,
        ]
    )


def format_chapter_block(title: str, summary: str) -> str:
    return f"**{title}**\n{summary.strip()}"


def join_chapter_blocks(results: Iterable[ChapterSummaryResult]) -> str:
    """Concatenate chapter summaries separated by blank lines."""

    return "\n\n".join(format_chapter_block(item.title, item.summary_markdown) for item in results)


def build_book_prompt(chapter_blocks: str, *, book_title: str | None = None) -> str:
    """Return the prompt combining chapter summaries into a book summary."""

    subject = f'the book "{book_title}"' if book_title else "a book"
    return "\n\n".join(
        [
            f"Below are chapter-by-chapter summaries of {subject}.",
            "Write a single summary of the whole book: open with an overview, then "
            "cover the main themes and how the book develops, then the key takeaways. "
            "Ignore chapters whose summary reports an error.",
            _FORMAT_RULES,
            "Chapter summaries:",
            chapter_blocks,
        ]
    )


__all__ = [
    "CallProfile",
    "TRUNCATION_MARKER",
    "build_book_prompt",
    "build_chapter_prompt",
    "format_chapter_block",
    "join_chapter_blocks",
]
