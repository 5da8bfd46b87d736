"""EPUB access layer: table of contents, chapter text and whole-book export."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Callable, Iterable, List, Tuple
from urllib.parse import unquote, urlsplit

import ebooklib
from bs4 import BeautifulSoup
from ebooklib import epub

from ..summaries.models import ChapterRef

LOGGER = logging.getLogger(__name__)

BOOK_RULE = "=" * 50
CHAPTER_RULE = "─" * 30

_NON_TEXT_TAGS = ("script", "style", "link")
_BLOCK_TAGS = [
    "p", "div", "section", "article", "blockquote", "pre", "li", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
]


class BookError(RuntimeError):
    """Base class for book access failures."""


class BookFormatError(BookError):
    """Raised when a file cannot be read as an EPUB."""


class ChapterNotFoundError(BookError):
    """Raised when an href does not resolve to a document in the book."""


class ResourceNotFoundError(BookError):
    """Raised when a path does not resolve to an item in the archive."""


def _is_content_document(item) -> bool:
    if item.get_type() == ebooklib.ITEM_DOCUMENT:
        return True
    media_type = getattr(item, "media_type", "") or ""
    if media_type in ("text/html", "application/xhtml+xml"):
        return True
    return (item.get_name() or "").lower().endswith((".html", ".xhtml", ".htm"))


def _parse_toc(entries: Iterable) -> List[ChapterRef]:
    """Convert ebooklib's TOC (``Link``, ``Section`` or ``(Section, children)``)."""

    refs: List[ChapterRef] = []
    for entry in entries:
        if isinstance(entry, tuple):
            section, children = entry
            refs.append(
                ChapterRef(
                    label=str(section.title or ""),
                    href=str(getattr(section, "href", "") or ""),
                    children=tuple(_parse_toc(children)),
                )
            )
        elif isinstance(entry, (epub.Link, epub.Section)):
            refs.append(ChapterRef(label=str(entry.title or ""), href=str(entry.href or "")))
    return refs


def resolve_resource_path(document_name: str, src: str) -> str | None:
    """Resolve ``src`` from ``document_name`` to an archive path.

    Returns ``None`` for absolute URLs, data URIs and fragment-only links.
    """

    parts = urlsplit(src)
    if parts.scheme or parts.netloc or not parts.path or src.startswith("/"):
        return None
    joined = posixpath.join(posixpath.dirname(document_name), unquote(parts.path))
    resolved = posixpath.normpath(joined)
    if resolved.startswith("../") or resolved == "..":
        return None
    return resolved


def _plain_text(soup: BeautifulSoup) -> str:
    for tag in soup(list(_NON_TEXT_TAGS)):
        tag.decompose()
    root = soup.find("body") or soup
    for block in root.find_all(_BLOCK_TAGS):
        block.append("\n")
    for br in root.find_all("br"):
        br.replace_with("\n")
    lines = (" ".join(line.split()) for line in root.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def _rewrite_images(
    soup: BeautifulSoup, document_name: str, resource_url: Callable[[str], str]
) -> None:
    for img in soup.find_all("img", src=True):
        path = resolve_resource_path(document_name, img["src"])
        if path:
            img["src"] = resource_url(path)
    for image in soup.find_all("image"):
        for attr in ("xlink:href", "href"):
            if image.has_attr(attr):
                path = resolve_resource_path(document_name, image[attr])
                if path:
                    image[attr] = resource_url(path)


class EpubBook:
    """Read-only view over an EPUB file backed by ``ebooklib``."""

    def __init__(self, book: epub.EpubBook, *, source: str | None = None) -> None:
        self._book = book
        self.source = source

    @classmethod
    def open(cls, path: str | Path) -> "EpubBook":
        try:
            book = epub.read_epub(str(path))
        except Exception as exc:  # ebooklib raises zipfile, KeyError and EpubException variants
            raise BookFormatError(f"Could not read EPUB file: {exc}") from exc
        return cls(book, source=str(path))

    def _metadata(self, key: str) -> str | None:
        values = self._book.get_metadata("DC", key)
        if not values:
            return None
        value = values[0][0]
        return str(value).strip() or None

    @property
    def title(self) -> str | None:
        return self._metadata("title")

    @property
    def creator(self) -> str | None:
        return self._metadata("creator")

    def _spine_documents(self) -> list:
        documents = []
        for item_id, _linear in self._book.spine:
            item = self._book.get_item_with_id(item_id)
            if item is not None and _is_content_document(item):
                documents.append(item)
        return documents

    def get_table_of_contents(self) -> List[ChapterRef]:
        """Return the navigation tree, or one entry per spine document when it is empty."""

        refs = _parse_toc(self._book.toc)
        if refs:
            return refs
        LOGGER.info("Empty TOC in %s; building one from the spine", self.source)
        fallback: List[ChapterRef] = []
        for item in self._spine_documents():
            name = item.get_name()
            label = Path(name).stem.replace("_", " ").replace("-", " ").title()
            fallback.append(ChapterRef(label=label, href=name))
        return fallback

    def _item_for_href(self, href: str):
        file_href = unquote(href.split("#", 1)[0])
        item = self._book.get_item_with_href(file_href)
        if item is None or not _is_content_document(item):
            raise ChapterNotFoundError(f"No chapter found for '{href}'")
        return item

    def _soup(self, item) -> BeautifulSoup:
        return BeautifulSoup(item.get_content(), "html.parser")

    def load_chapter_text(self, href: str) -> str:
        """Return the plain text of the document ``href`` points to."""

        return _plain_text(self._soup(self._item_for_href(href)))

    def load_chapter_html(
        self,
        href: str,
        *,
        resource_url: Callable[[str], str] | None = None,
    ) -> str:
        """Return the chapter body markup with scripts removed.

        When ``resource_url`` is given, relative image sources are resolved
        against the chapter's location and passed through it.
        """

        item = self._item_for_href(href)
        soup = self._soup(item)
        for tag in soup("script"):
            tag.decompose()
        if resource_url is not None:
            _rewrite_images(soup, item.get_name(), resource_url)
        body = soup.find("body")
        if body is None:
            return str(soup)
        return "".join(str(node) for node in body.contents).strip()

    def load_resource(self, path: str) -> Tuple[bytes, str]:
        """Return the content and media type of the archive item at ``path``."""

        item = self._book.get_item_with_href(unquote(path))
        if item is None:
            raise ResourceNotFoundError(f"No resource found for '{path}'")
        media_type = getattr(item, "media_type", None) or "application/octet-stream"
        return item.get_content(), media_type

    def full_text(self) -> str:
        """Return every spine document as plain text, headed by title and author."""

        parts: List[str] = []
        title = self.title
        if title:
            parts.append(f"{title}\n")
            if self.creator:
                parts.append(f"by {self.creator}\n")
            parts.append(f"\n{BOOK_RULE}\n\n")

        documents = self._spine_documents()
        for index, item in enumerate(documents):
            try:
                text = _plain_text(self._soup(item))
            except Exception as exc:  # noqa: BLE001 - unreadable sections are skipped
                LOGGER.warning("Could not load chapter %s: %s", index + 1, exc)
                continue
            if text.strip():
                parts.append(text.strip() + "\n\n")
            if index < len(documents) - 1:
                parts.append(f"{CHAPTER_RULE}\n\n")
        return "".join(parts)


__all__ = [
    "BOOK_RULE",
    "BookError",
    "BookFormatError",
    "CHAPTER_RULE",
    "ChapterNotFoundError",
    "EpubBook",
    "ResourceNotFoundError",
    "resolve_resource_path",
]
