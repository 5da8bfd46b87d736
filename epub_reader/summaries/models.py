"""Data models used by the summarization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Tuple


@dataclass(frozen=True, slots=True)
class ChapterRef:
    """Table-of-contents node supplied by the book collaborator."""

    label: str
    href: str
    children: Tuple["ChapterRef", ...] = ()

    def as_dict(self) -> dict:
        return {
            "label": self.label,
            "href": self.href,
            "children": [child.as_dict() for child in self.children],
        }


@dataclass(frozen=True, slots=True)
class ChapterSummaryResult:
    """Summary produced for one chapter of a whole-book run."""

    title: str
    summary_markdown: str
    ok: bool = True


@dataclass(frozen=True, slots=True)
class RequestAttempt:
    """Event emitted by the executor before it waits to retry."""

    attempt: int
    delay_s: float
    reason: str
    max_attempts: int = 0

    @property
    def delay_ms(self) -> int:
        return int(round(self.delay_s * 1000))

    @property
    def next_attempt(self) -> int:
        return self.attempt + 1


ProgressListener = Callable[["ProgressState"], None]


@dataclass(slots=True)
class ProgressState:
    """Progress of a whole-book run.

    The orchestrator is the only writer. ``percent_complete`` never moves
    backwards except through :meth:`reset`.
    """

    percent_complete: int = 0
    status_message: str = ""
    listeners: List[ProgressListener] = field(default_factory=list, repr=False)

    def update(self, percent: int | None = None, message: str | None = None) -> None:
        if percent is not None:
            bounded = max(0, min(100, int(percent)))
            self.percent_complete = max(self.percent_complete, bounded)
        if message is not None:
            self.status_message = message
        self._notify()

    def reset(self, message: str = "") -> None:
        self.percent_complete = 0
        self.status_message = message
        self._notify()

    def snapshot(self) -> dict:
        return {"percentComplete": self.percent_complete, "statusMessage": self.status_message}

    def _notify(self) -> None:
        for listener in list(self.listeners):
            listener(self)


@dataclass(slots=True)
class ChapterSummary:
    """Single-chapter summary ready for display."""

    title: str
    markdown: str
    html: str


@dataclass(slots=True)
class BookSummary:
    """Result of :func:`summarize_book`."""

    chapters: List[ChapterSummaryResult]
    markdown: str
    html: str
    skipped: List[str] = field(default_factory=list)


__all__ = [
    "BookSummary",
    "ChapterRef",
    "ChapterSummary",
    "ChapterSummaryResult",
    "ProgressListener",
    "ProgressState",
    "RequestAttempt",
]
