"""Book upload, navigation and chapter retrieval endpoints."""

from __future__ import annotations

from typing import Iterable, List
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import PlainTextResponse, Response

from ..api.books import BookOut, ChapterOut, TocEntryOut
from ..services.epub_book import BookFormatError, ChapterNotFoundError, ResourceNotFoundError
from ..services.library import (
    BookLibrary,
    BookNotFoundError,
    StoredBook,
    UploadTooLargeError,
    get_library,
)
from ..summaries.models import ChapterRef

router = APIRouter(prefix="/api/books", tags=["books"])


def toc_payload(entries: Iterable[ChapterRef]) -> List[TocEntryOut]:
    return [
        TocEntryOut(label=entry.label, href=entry.href, children=toc_payload(entry.children))
        for entry in entries
    ]


def book_payload(stored: StoredBook) -> BookOut:
    return BookOut(
        bookId=stored.id,
        filename=stored.filename,
        title=stored.book.title,
        creator=stored.book.creator,
        toc=toc_payload(stored.book.get_table_of_contents()),
    )


def resource_url_for(book_id: str):
    """Return a function mapping archive paths to the resource endpoint."""

    def _url(path: str) -> str:
        return f"{router.prefix}/{book_id}/resources/{quote(path)}"

    return _url


def get_book_or_404(library: BookLibrary, book_id: str) -> StoredBook:
    try:
        return library.get(book_id)
    except BookNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("", response_model=BookOut, status_code=status.HTTP_201_CREATED)
async def upload_book(
    file: UploadFile = File(...),
    library: BookLibrary = Depends(get_library),
) -> BookOut:
    """Store an uploaded EPUB and return its table of contents."""

    data = await file.read()
    try:
        stored = library.add(file.filename or "book.epub", data)
    except UploadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        ) from exc
    except BookFormatError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    return book_payload(stored)


@router.get("/{book_id}", response_model=BookOut)
async def get_book(book_id: str, library: BookLibrary = Depends(get_library)) -> BookOut:
    return book_payload(get_book_or_404(library, book_id))


@router.get("/{book_id}/toc", response_model=List[TocEntryOut])
async def get_toc(book_id: str, library: BookLibrary = Depends(get_library)) -> List[TocEntryOut]:
    stored = get_book_or_404(library, book_id)
    return toc_payload(stored.book.get_table_of_contents())


@router.get("/{book_id}/chapter", response_model=ChapterOut)
async def get_chapter(
    book_id: str,
    href: str = Query(..., min_length=1),
    library: BookLibrary = Depends(get_library),
) -> ChapterOut:
    """Return the chapter markup for the reading view."""

    stored = get_book_or_404(library, book_id)
    try:
        html = stored.book.load_chapter_html(href, resource_url=resource_url_for(book_id))
        text = stored.book.load_chapter_text(href)
    except ChapterNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ChapterOut(href=href, html=html, text=text)


@router.get("/{book_id}/text", response_class=PlainTextResponse)
async def get_book_text(book_id: str, library: BookLibrary = Depends(get_library)) -> str:
    """Return the whole book as plain text."""

    stored = get_book_or_404(library, book_id)
    return stored.book.full_text()


@router.get("/{book_id}/resources/{path:path}")
async def get_book_resource(
    book_id: str,
    path: str,
    library: BookLibrary = Depends(get_library),
) -> Response:
    """Serve an image, stylesheet or other item from the book archive."""

    stored = get_book_or_404(library, book_id)
    try:
        content, media_type = stored.book.load_resource(path)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(content=content, media_type=media_type)


__all__ = ["book_payload", "get_book_or_404", "resource_url_for", "router", "toc_payload"]
