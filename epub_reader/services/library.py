"""In-memory book store and whole-book summary job tracking."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict

from ..config import get_settings
from ..summaries.models import BookSummary, ProgressState
from ..utils.logging import configure_logging
from .epub_book import BookError, BookFormatError, EpubBook

LOGGER = configure_logging().getChild(__name__)


class BookNotFoundError(BookError):
    """Raised when a book id is unknown."""


class UploadTooLargeError(BookError):
    """Raised when an upload exceeds ``MAX_UPLOAD_SIZE``."""


class JobNotFoundError(RuntimeError):
    """Raised when a summary job id is unknown."""


class JobConflictError(RuntimeError):
    """Raised when a whole-book summary is already in progress."""


@dataclass
class StoredBook:
    id: str
    filename: str
    path: Path
    book: EpubBook


class BookLibrary:
    """Keeps uploaded EPUBs on disk and their parsed views in memory."""

    def __init__(self, upload_dir: Path, *, max_upload_size: int) -> None:
        self.upload_dir = Path(upload_dir)
        self.max_upload_size = max_upload_size
        self._books: Dict[str, StoredBook] = {}

    def add(self, filename: str, data: bytes) -> StoredBook:
        if len(data) > self.max_upload_size:
            raise UploadTooLargeError(
                f"Upload is {len(data)} bytes; the limit is {self.max_upload_size}"
            )
        if not data:
            raise BookFormatError("Uploaded file is empty")
        book_id = uuid.uuid4().hex
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / f"{book_id}.epub"
        path.write_bytes(data)
        try:
            book = EpubBook.open(path)
        except BookFormatError:
            path.unlink(missing_ok=True)
            raise
        stored = StoredBook(id=book_id, filename=filename, path=path, book=book)
        self._books[book_id] = stored
        LOGGER.info("Stored book id=%s filename=%s bytes=%s", book_id, filename, len(data))
        return stored

    def get(self, book_id: str) -> StoredBook:
        stored = self._books.get(book_id)
        if stored is None:
            raise BookNotFoundError(f"Book '{book_id}' not found")
        return stored


@dataclass
class SummaryJob:
    id: str
    book_id: str
    status: str = "queued"
    progress: ProgressState = field(default_factory=ProgressState)
    result: BookSummary | None = None
    error: str | None = None
    finished_at: datetime | None = None

    @property
    def active(self) -> bool:
        return self.status in {"queued", "running"}


class SummaryJobRegistry:
    """Tracks whole-book summary runs; only one may be active at a time.

    Finished jobs are kept for ``job_ttl_s`` seconds so clients can poll the
    outcome, then dropped.
    """

    def __init__(self, *, job_ttl_s: float = 3_600.0) -> None:
        self.job_ttl_s = job_ttl_s
        self._jobs: Dict[str, SummaryJob] = {}

    def create(self, book_id: str) -> SummaryJob:
        self.prune()
        for job in self._jobs.values():
            if job.active:
                raise JobConflictError(
                    f"A book summary is already running (job {job.id})"
                )
        job = SummaryJob(id=uuid.uuid4().hex, book_id=book_id)
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> SummaryJob:
        self.prune()
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Summary job '{job_id}' not found")
        return job

    def prune(self, now: datetime | None = None) -> int:
        """Drop finished jobs older than ``job_ttl_s``; return how many were removed."""

        cutoff = (now or datetime.now(UTC)) - timedelta(seconds=self.job_ttl_s)
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.finished_at is not None and job.finished_at <= cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            LOGGER.debug("[summaries] pruned %s finished jobs", len(expired))
        return len(expired)


async def run_summary_job(
    job: SummaryJob,
    runner: Callable[[ProgressState], Awaitable[BookSummary]],
    *,
    error_display_s: float = 0.0,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> None:
    """Execute ``runner`` for ``job``, recording the outcome instead of raising.

    On failure the error stays visible in the status message for
    ``error_display_s`` seconds, then the progress is reset. ``job.error``
    keeps the message.
    """

    job.status = "running"
    try:
        job.result = await runner(job.progress)
    except Exception as exc:  # noqa: BLE001 - background task; outcome lives on the job
        LOGGER.error("[summaries] job %s failed: %s", job.id, exc)
        job.status = "failed"
        job.error = str(exc)
        job.progress.update(message=f"Error: {exc}")
        if error_display_s > 0:
            await (sleep or asyncio.sleep)(error_display_s)
        job.progress.reset()
    else:
        job.status = "complete"
    finally:
        job.finished_at = datetime.now(UTC)


_LIBRARY: BookLibrary | None = None
_JOBS: SummaryJobRegistry | None = None


def get_library() -> BookLibrary:
    """Return the process-wide book library, creating it from settings."""

    global _LIBRARY
    if _LIBRARY is None:
        settings = get_settings()
        _LIBRARY = BookLibrary(settings.upload_dir, max_upload_size=settings.max_upload_size)
    return _LIBRARY


def get_job_registry() -> SummaryJobRegistry:
    global _JOBS
    if _JOBS is None:
        _JOBS = SummaryJobRegistry(job_ttl_s=get_settings().summary_job_ttl_s)
    return _JOBS


def reset_library_state() -> None:
    """Drop cached library and job registry (useful for tests)."""

    global _LIBRARY, _JOBS
    _LIBRARY = None
    _JOBS = None


__all__ = [
    "BookLibrary",
    "BookNotFoundError",
    "JobConflictError",
    "JobNotFoundError",
    "StoredBook",
    "SummaryJob",
    "SummaryJobRegistry",
    "UploadTooLargeError",
    "get_job_registry",
    "get_library",
    "reset_library_state",
    "run_summary_job",
]
