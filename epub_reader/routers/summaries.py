"""Chapter and whole-book summary endpoints."""

from __future__ import annotations

import html

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from ..api.books import (
    BookSummaryOut,
    ChapterSummaryEntryOut,
    ChapterSummaryOut,
    ChapterSummaryRequest,
    SummaryJobOut,
)
from ..config import Settings, get_settings
from ..services.epub_book import ChapterNotFoundError
from ..services.library import (
    BookLibrary,
    JobConflictError,
    JobNotFoundError,
    SummaryJob,
    SummaryJobRegistry,
    get_job_registry,
    get_library,
    run_summary_job,
)
from ..summaries import (
    ChapterRef,
    NoCredentialError,
    ProgressState,
    SummaryError,
    summarize_book,
    summarize_chapter,
)
from ..summaries.transport import ChatTransport, HttpxChatTransport
from ..utils.logging import configure_logging
from .books import get_book_or_404

LOGGER = configure_logging().getChild(__name__)

router = APIRouter(prefix="/api", tags=["summaries"])


def get_chat_transport(settings: Settings = Depends(get_settings)) -> ChatTransport:
    """Return the HTTP transport used for summary calls."""

    return HttpxChatTransport(base_url=settings.openai_base_url)


def resolve_credential(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings),
) -> str | None:
    """Return the API key from the request headers or the server configuration."""

    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    return settings.openai_api_key


def _missing_credential(exc: NoCredentialError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


def _inline_error(title: str, message: str) -> ChapterSummaryOut:
    return ChapterSummaryOut(
        ok=False,
        title=title,
        html=f"<p>Error: {html.escape(message)}</p>",
        error=message,
    )


def job_payload(job: SummaryJob) -> SummaryJobOut:
    result = None
    if job.result is not None:
        result = BookSummaryOut(
            markdown=job.result.markdown,
            html=job.result.html,
            chapters=[
                ChapterSummaryEntryOut(title=item.title, summary=item.summary_markdown, ok=item.ok)
                for item in job.result.chapters
            ],
            skipped=list(job.result.skipped),
        )
    return SummaryJobOut(
        jobId=job.id,
        bookId=job.book_id,
        status=job.status,
        percentComplete=job.progress.percent_complete,
        statusMessage=job.progress.status_message,
        error=job.error,
        result=result,
    )


@router.post("/books/{book_id}/summaries/chapter", response_model=ChapterSummaryOut)
async def create_chapter_summary(
    book_id: str,
    request: ChapterSummaryRequest,
    *,
    credential: str | None = Depends(resolve_credential),
    transport: ChatTransport = Depends(get_chat_transport),
    library: BookLibrary = Depends(get_library),
    settings: Settings = Depends(get_settings),
) -> ChapterSummaryOut:
    """Summarize one chapter; failures are reported inline rather than as HTTP errors."""

    stored = get_book_or_404(library, book_id)
    chapter = ChapterRef(label=request.title or "", href=request.href)
    title = chapter.label.strip() or chapter.href
    try:
        summary = await summarize_chapter(
            chapter,
            stored.book.load_chapter_text,
            credential,
            settings=settings,
            transport=transport,
        )
    except NoCredentialError as exc:
        raise _missing_credential(exc) from exc
    except ChapterNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SummaryError as exc:
        return _inline_error(title, str(exc))
    except Exception as exc:  # noqa: BLE001 - shown in place of the summary
        LOGGER.exception("[summaries] chapter summary for %s failed", chapter.href)
        return _inline_error(title, str(exc) or exc.__class__.__name__)
    return ChapterSummaryOut(ok=True, title=summary.title, markdown=summary.markdown, html=summary.html)


@router.post("/books/{book_id}/summaries/book")
async def create_book_summary(
    book_id: str,
    *,
    background_tasks: BackgroundTasks,
    credential: str | None = Depends(resolve_credential),
    transport: ChatTransport = Depends(get_chat_transport),
    library: BookLibrary = Depends(get_library),
    jobs: SummaryJobRegistry = Depends(get_job_registry),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Start a whole-book summary in the background and return its job id."""

    stored = get_book_or_404(library, book_id)
    if not (credential or "").strip():
        raise _missing_credential(NoCredentialError())
    toc = stored.book.get_table_of_contents()
    if not toc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="The book has no chapters to summarize",
        )
    try:
        job = jobs.create(book_id)
    except JobConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    async def _runner(progress: ProgressState):
        return await summarize_book(
            toc,
            stored.book.load_chapter_text,
            credential,
            book_title=stored.book.title,
            settings=settings,
            transport=transport,
            progress=progress,
        )

    background_tasks.add_task(
        run_summary_job,
        job,
        _runner,
        error_display_s=settings.summary_error_display_s,
    )
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=job_payload(job).model_dump(),
    )


@router.get("/summaries/jobs/{job_id}", response_model=SummaryJobOut)
async def get_summary_job(
    job_id: str,
    jobs: SummaryJobRegistry = Depends(get_job_registry),
) -> SummaryJobOut:
    try:
        job = jobs.get(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return job_payload(job)


__all__ = ["get_chat_transport", "resolve_credential", "router"]
