"""Chapter and whole-book summarization flows."""

from __future__ import annotations

import inspect
import time
from typing import Awaitable, Callable, List, Sequence, Union

from ..config import Settings, get_settings
from ..utils.logging import configure_logging
from ..utils.trace import SummaryTracer
from .errors import EmptyChapterTextError, NoChaptersError, NoCredentialError
from .executor import RequestExecutor, RetryPolicy, Sleep
from .markdown import render_markdown
from .models import (
    BookSummary,
    ChapterRef,
    ChapterSummary,
    ChapterSummaryResult,
    ProgressState,
    RequestAttempt,
)
from .prompt import CallProfile, build_book_prompt, build_chapter_prompt, join_chapter_blocks
from .transport import ChatTransport, HttpxChatTransport

LOGGER = configure_logging().getChild(__name__)

SectionLoader = Callable[[str], Union[str, Awaitable[str]]]

CHAPTER_PROGRESS_SPAN = 50
AGGREGATE_PROGRESS = 75


def flatten_top_level(toc: Sequence[ChapterRef]) -> List[ChapterRef]:
    """Return the top-level entries of ``toc`` in order; sub-items are not visited."""

    return list(toc)


def chapter_title(chapter: ChapterRef) -> str:
    return chapter.label.strip() or chapter.href


def _require_credential(credential: str | None) -> str:
    value = (credential or "").strip()
    if not value:
        raise NoCredentialError()
    return value


async def _load_text(loader: SectionLoader, href: str) -> str:
    result = loader(href)
    if inspect.isawaitable(result):
        result = await result
    return str(result or "")


def failure_placeholder(exc: BaseException) -> str:
    """Return the italic note recorded for a chapter whose summary failed."""

    message = " ".join(str(exc).replace("*", "").split()) or exc.__class__.__name__
    return f"*Could not summarize this chapter: {message}*"


def _retry_message(prefix: str, event: RequestAttempt) -> str:
    return (
        f"{prefix}: attempt {event.attempt} failed ({event.reason}); "
        f"retrying in {event.delay_s:g}s (attempt {event.next_attempt}/{event.max_attempts})"
    )


def build_executor(
    credential: str,
    *,
    settings: Settings,
    transport: ChatTransport | None = None,
    sleep: Sleep | None = None,
) -> RequestExecutor:
    """Return an executor using the chapter-call policy from ``settings``."""

    policy = RetryPolicy(
        max_retries=settings.summary_retry_max,
        backoff_s=settings.summary_backoff_s,
        timeout_s=settings.summary_chapter_timeout_s,
    )
    return RequestExecutor(
        transport or HttpxChatTransport(base_url=settings.openai_base_url),
        credential=credential,
        policy=policy,
        sleep=sleep,
    )


async def summarize_chapter(
    chapter: ChapterRef,
    load_chapter_text: SectionLoader,
    credential: str | None,
    *,
    settings: Settings | None = None,
    transport: ChatTransport | None = None,
    executor: RequestExecutor | None = None,
    progress: ProgressState | None = None,
    sleep: Sleep | None = None,
) -> ChapterSummary:
    """Summarize one chapter for display.

    Executor failures propagate so the caller can show them in place of the
    summary.
    """

    settings = settings or get_settings()
    key = _require_credential(credential)
    title = chapter_title(chapter)
    text = (await _load_text(load_chapter_text, chapter.href)).strip()
    if not text:
        raise EmptyChapterTextError(f"Chapter '{title}' has no text to summarize")

    profile = CallProfile.chapter_from_settings(settings)
    runner = executor or build_executor(key, settings=settings, transport=transport, sleep=sleep)
    runner = runner.with_policy(runner.policy.with_timeout(profile.timeout_s))

    def _on_attempt(event: RequestAttempt) -> None:
        if progress is not None:
            progress.update(message=_retry_message(title, event))

    if progress is not None:
        progress.update(0, f"Summarizing {title}")
    markdown = await runner.execute(
        profile.request(
            build_chapter_prompt(title, text, max_chars=settings.summary_chapter_max_chars)
        ),
        context=f"chapter '{title}'",
        on_attempt=_on_attempt,
    )
    if progress is not None:
        progress.update(100, "Summary complete")
    return ChapterSummary(title=title, markdown=markdown, html=render_markdown(markdown))


async def summarize_book(
    toc: Sequence[ChapterRef],
    load_chapter_text: SectionLoader,
    credential: str | None,
    *,
    book_title: str | None = None,
    settings: Settings | None = None,
    transport: ChatTransport | None = None,
    executor: RequestExecutor | None = None,
    progress: ProgressState | None = None,
    sleep: Sleep | None = None,
    tracer: SummaryTracer | None = None,
) -> BookSummary:
    """Summarize every top-level chapter, then the book as a whole.

    Chapters run strictly in table-of-contents order. A chapter whose text is
    empty is skipped without a call; a chapter whose call fails is recorded
    with an error placeholder and the run continues. The final aggregate call
    is not downgradable: its failure propagates to the caller.
    """

    settings = settings or get_settings()
    key = _require_credential(credential)
    chapters = flatten_top_level(toc)
    if not chapters:
        raise NoChaptersError("The book has no chapters to summarize")

    progress = progress if progress is not None else ProgressState()
    if tracer is None and settings.summary_trace:
        tracer = SummaryTracer(out_dir=str(settings.summary_trace_dir))
    runner = executor or build_executor(key, settings=settings, transport=transport, sleep=sleep)
    chapter_profile = CallProfile.chapter_from_settings(settings)
    book_profile = CallProfile.book_from_settings(settings)
    chapter_runner = runner.with_policy(runner.policy.with_timeout(chapter_profile.timeout_s))
    book_runner = runner.with_policy(runner.policy.with_timeout(book_profile.timeout_s))

    total = len(chapters)
    start = time.perf_counter()
    if tracer:
        tracer.ev("start_run", book_title=book_title, chapters=total, model=chapter_profile.model)
    LOGGER.info("[summaries] starting book summary title=%s chapters=%s", book_title, total)
    progress.update(0, f"Summarizing {total} chapters")

    results: List[ChapterSummaryResult] = []
    skipped: List[str] = []
    try:
        for index, chapter in enumerate(chapters, start=1):
            title = chapter_title(chapter)
            prefix = f"Chapter {index}/{total}"
            progress.update(message=f"{prefix}: {title}")

            def _on_attempt(event: RequestAttempt, prefix: str = prefix, title: str = title) -> None:
                progress.update(message=_retry_message(prefix, event))
                if tracer:
                    tracer.ev(
                        "retry_scheduled",
                        context=title,
                        attempt=event.attempt,
                        delay_s=event.delay_s,
                        reason=event.reason,
                    )

            try:
                text = (await _load_text(load_chapter_text, chapter.href)).strip()
                if not text:
                    LOGGER.info("[summaries] skipping empty chapter %s", title)
                    skipped.append(title)
                    if tracer:
                        tracer.ev("chapter_skipped", index=index, title=title)
                else:
                    summary = await chapter_runner.execute(
                        chapter_profile.request(
                            build_chapter_prompt(
                                title, text, max_chars=settings.summary_chapter_max_chars
                            )
                        ),
                        context=f"chapter {index}/{total} '{title}'",
                        on_attempt=_on_attempt,
                    )
                    results.append(ChapterSummaryResult(title=title, summary_markdown=summary))
                    if tracer:
                        tracer.ev("chapter_summarized", index=index, title=title, chars=len(summary))
            except Exception as exc:  # noqa: BLE001 - per-chapter failures become placeholders
                LOGGER.warning("[summaries] chapter %s failed: %s", title, exc)
                results.append(
                    ChapterSummaryResult(
                        title=title,
                        summary_markdown=failure_placeholder(exc),
                        ok=False,
                    )
                )
                if tracer:
                    tracer.ev("chapter_failed", index=index, title=title, error=str(exc))

            progress.update(round(CHAPTER_PROGRESS_SPAN * index / total))

        if not results:
            raise NoChaptersError("Every chapter was empty; nothing to summarize")

        progress.update(AGGREGATE_PROGRESS, "Creating book summary")
        if tracer:
            tracer.ev("aggregate_start", chapters=len(results))
        book_markdown = await book_runner.execute(
            book_profile.request(
                build_book_prompt(join_chapter_blocks(results), book_title=book_title)
            ),
            context="book summary",
            on_attempt=lambda event: progress.update(
                message=_retry_message("Book summary", event)
            ),
        )
    except Exception as exc:
        if tracer:
            tracer.ev("end_run", outcome="failed", error=str(exc), elapsed_s=time.perf_counter() - start)
            _flush(tracer, settings)
        raise

    progress.update(100, "Summary complete")
    elapsed = time.perf_counter() - start
    LOGGER.info(
        "[summaries] book summary complete chapters=%s skipped=%s elapsed=%.1fs",
        len(results),
        len(skipped),
        elapsed,
    )
    if tracer:
        tracer.ev("end_run", outcome="ok", elapsed_s=elapsed)
        _flush(tracer, settings)
    return BookSummary(
        chapters=results,
        markdown=book_markdown,
        html=render_markdown(book_markdown),
        skipped=skipped,
    )


def _flush(tracer: SummaryTracer, settings: Settings) -> None:
    if settings.summary_trace:
        tracer.flush_jsonl()


__all__ = [
    "SectionLoader",
    "build_executor",
    "chapter_title",
    "failure_placeholder",
    "flatten_top_level",
    "summarize_book",
    "summarize_chapter",
]
