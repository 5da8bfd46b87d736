"""FastAPI application for the EPUB reader."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .routers.books import router as books_router
from .routers.summaries import router as summaries_router
from .utils.logging import configure_logging

configure_logging(get_settings().log_level)

app = FastAPI(title="EPUB Reader", version="1.0.0")

app.include_router(books_router)
app.include_router(summaries_router)

frontend_dir = get_settings().frontend_dir
if frontend_dir.exists():
    app.mount("/", StaticFiles(directory=str(frontend_dir), html=True), name="frontend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
