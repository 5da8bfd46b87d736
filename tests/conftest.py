"""Test configuration for the EPUB reader."""

from __future__ import annotations

import asyncio
import inspect
import sys
from pathlib import Path
from typing import Callable, Generator, Mapping, Sequence

import pytest  # noqa: E402
from ebooklib import epub  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from epub_reader.config import reset_settings_cache  # noqa: E402
from epub_reader.services.library import reset_library_state  # noqa: E402
from epub_reader.summaries.transport import ChatRequest, TransportResponse  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Provide isolated configuration for each test."""

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("SUMMARY_TRACE", raising=False)
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("SUMMARY_TRACE_DIR", str(tmp_path / "traces"))
    monkeypatch.setenv("FRONTEND_DIR", str(tmp_path / "frontend"))
    monkeypatch.setenv("SUMMARY_BACKOFF_S", "0")
    monkeypatch.setenv("SUMMARY_ERROR_DISPLAY_S", "0")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    reset_settings_cache()
    reset_library_state()
    yield
    reset_settings_cache()
    reset_library_state()


class ScriptedTransport:
    """Chat transport replaying a FIFO queue of responses or exceptions."""

    def __init__(self) -> None:
        self._queue: list[TransportResponse | BaseException] = []
        self.requests: list[ChatRequest] = []
        self.credentials: list[str] = []
        self.timeouts: list[float] = []

    def enqueue(self, response: TransportResponse | BaseException) -> None:
        self._queue.append(response)

    def enqueue_text(self, text: str) -> None:
        self.enqueue(
            TransportResponse(
                status_code=200,
                payload={"choices": [{"message": {"role": "assistant", "content": text}}]},
            )
        )

    def enqueue_status(self, status_code: int, message: str | None = None) -> None:
        payload = {"error": {"message": message}} if message else None
        self.enqueue(TransportResponse(status_code=status_code, payload=payload))

    @property
    def remaining(self) -> int:
        return len(self._queue)

    async def call(self, request: ChatRequest, *, credential: str, timeout_s: float) -> TransportResponse:
        self.requests.append(request)
        self.credentials.append(credential)
        self.timeouts.append(timeout_s)
        if not self._queue:
            raise RuntimeError("ScriptedTransport was called without a queued response")
        item = self._queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def scripted_transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


def _write_epub(
    path: Path,
    chapters: Sequence[tuple[str, str]],
    *,
    title: str | None = "Test Book",
    author: str | None = "Ada Writer",
    nest_last: bool = False,
    images: Mapping[str, bytes] | None = None,
) -> Path:
    book = epub.EpubBook()
    book.set_identifier("urn:test:book")
    if title:
        book.set_title(title)
    book.set_language("en")
    if author:
        book.add_author(author)

    items = []
    for index, (chapter_title, body) in enumerate(chapters, start=1):
        item = epub.EpubHtml(title=chapter_title, file_name=f"chap_{index:02d}.xhtml", lang="en")
        item.content = f"<html><head></head><body>{body}</body></html>"
        book.add_item(item)
        items.append(item)

    for index, (file_name, content) in enumerate((images or {}).items(), start=1):
        book.add_item(
            epub.EpubImage(
                uid=f"img{index}", file_name=file_name, media_type="image/png", content=content
            )
        )

    links = [
        epub.Link(item.file_name, chapter_title, f"chap{index}")
        for index, (item, (chapter_title, _)) in enumerate(zip(items, chapters), start=1)
    ]
    if nest_last and len(links) >= 2:
        parent, child = links[-2], links[-1]
        book.toc = links[:-2] + [(epub.Section(parent.title, parent.href), [child])]
    else:
        book.toc = links
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = items
    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def epub_factory(tmp_path: Path) -> Callable[..., Path]:
    """Return a builder writing small EPUB files under ``tmp_path``."""

    counter = {"n": 0}

    def _build(chapters: Sequence[tuple[str, str]], **kwargs) -> Path:
        counter["n"] += 1
        return _write_epub(tmp_path / f"book_{counter['n']}.epub", chapters, **kwargs)

    return _build


@pytest.fixture()
def client(scripted_transport: ScriptedTransport) -> Generator[TestClient, None, None]:
    """Return a test client whose summary calls go to ``scripted_transport``."""

    from epub_reader.main import app
    from epub_reader.routers.summaries import get_chat_transport

    app.dependency_overrides[get_chat_transport] = lambda: scripted_transport
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        loop = asyncio.new_event_loop()
        try:
            signature = inspect.signature(pyfuncitem.obj)
            kwargs = {
                name: pyfuncitem.funcargs[name]
                for name in signature.parameters
                if name in pyfuncitem.funcargs
            }
            loop.run_until_complete(pyfuncitem.obj(**kwargs))
        finally:
            loop.close()
        return True
    return None
