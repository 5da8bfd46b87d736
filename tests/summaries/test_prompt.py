from __future__ import annotations

from epub_reader.config import get_settings
from epub_reader.summaries.models import ChapterSummaryResult
from epub_reader.summaries.prompt import (
    TRUNCATION_MARKER,
    CallProfile,
    build_book_prompt,
    build_chapter_prompt,
    join_chapter_blocks,
)


def test_chapter_prompt_contains_title_and_text() -> None:
    prompt = build_chapter_prompt("The Storm", "  Rain fell all night.  ")

    assert 'titled "The Storm"' in prompt
    assert prompt.endswith("Rain fell all night.")
    assert TRUNCATION_MARKER not in prompt


def test_long_chapter_text_is_truncated() -> None:
    prompt = build_chapter_prompt("Long", "x" * 500, max_chars=100)

    assert prompt.endswith("x" * 100 + TRUNCATION_MARKER)
    assert "x" * 101 not in prompt


def test_chapter_blocks_are_bold_titled_and_blank_line_separated() -> None:
    blocks = join_chapter_blocks(
        [
            ChapterSummaryResult(title="One", summary_markdown="First summary\n"),
            ChapterSummaryResult(title="Two", summary_markdown="*failed*", ok=False),
        ]
    )

    assert blocks == "**One**\nFirst summary\n\n**Two**\n*failed*"


def test_book_prompt_names_the_book() -> None:
    prompt = build_book_prompt("**One**\nsummary", book_title="Moby Dick")

    assert 'the book "Moby Dick"' in prompt
    assert prompt.endswith("**One**\nsummary")
    assert "a book" in build_book_prompt("blocks")


def test_call_profiles_follow_settings(monkeypatch) -> None:
    monkeypatch.setenv("SUMMARY_MODEL", "small-model")
    monkeypatch.setenv("SUMMARY_BOOK_TIMEOUT_S", "60")
    get_settings.cache_clear()
    settings = get_settings()

    chapter = CallProfile.chapter_from_settings(settings)
    book = CallProfile.book_from_settings(settings)
    request = book.request("prompt")

    assert chapter.model == book.model == "small-model"
    assert chapter.timeout_s == 30.0
    assert book.timeout_s == 60.0
    assert chapter.max_completion_tokens == 2000
    assert request.max_completion_tokens == 4000
    assert request.reasoning_effort == "low"
