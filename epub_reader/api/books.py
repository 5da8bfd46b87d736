"""Pydantic schemas for the book and summary endpoints."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class TocEntryOut(BaseModel):
    """One table-of-contents node."""

    label: str
    href: str
    children: List["TocEntryOut"] = Field(default_factory=list)


class BookOut(BaseModel):
    """Uploaded book with its navigation tree."""

    bookId: str
    filename: str
    title: Optional[str] = None
    creator: Optional[str] = None
    toc: List[TocEntryOut]


class ChapterOut(BaseModel):
    """Chapter markup for the reading view plus its plain text."""

    href: str
    html: str
    text: str


class ChapterSummaryRequest(BaseModel):
    """Request body for a single-chapter summary."""

    href: str = Field(min_length=1)
    title: Optional[str] = Field(
        default=None, description="Label shown for the chapter; defaults to the href."
    )


class ChapterSummaryOut(BaseModel):
    """Single-chapter summary; on failure ``ok`` is false and ``html`` carries the error."""

    ok: bool
    title: str
    markdown: str = ""
    html: str = ""
    error: Optional[str] = None


class ChapterSummaryEntryOut(BaseModel):
    title: str
    summary: str
    ok: bool = True


class BookSummaryOut(BaseModel):
    markdown: str
    html: str
    chapters: List[ChapterSummaryEntryOut]
    skipped: List[str] = Field(default_factory=list)


class SummaryJobOut(BaseModel):
    """Status of a whole-book summary run."""

    jobId: str
    bookId: str
    status: str
    percentComplete: int
    statusMessage: str
    error: Optional[str] = None
    result: Optional[BookSummaryOut] = None


__all__ = [
    "BookOut",
    "BookSummaryOut",
    "ChapterOut",
    "ChapterSummaryEntryOut",
    "ChapterSummaryOut",
    "ChapterSummaryRequest",
    "SummaryJobOut",
    "TocEntryOut",
]
