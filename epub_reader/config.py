"""Environment-driven settings for the EPUB reader backend."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


class Settings(BaseModel):
    """Runtime configuration resolved from environment variables."""

    openai_api_key: str | None = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL

    summary_model: str = "gpt-5-mini"
    summary_reasoning_effort: str = "low"
    summary_chapter_max_tokens: int = Field(default=2_000, ge=1)
    summary_book_max_tokens: int = Field(default=4_000, ge=1)
    summary_chapter_timeout_s: float = Field(default=30.0, gt=0)
    summary_book_timeout_s: float = Field(default=45.0, gt=0)
    summary_retry_max: int = Field(default=3, ge=1)
    summary_backoff_s: float = Field(default=2.0, ge=0)
    summary_chapter_max_chars: int = Field(default=60_000, ge=1)
    summary_trace: bool = False
    summary_error_display_s: float = Field(default=3.0, ge=0)
    summary_job_ttl_s: float = Field(default=3_600.0, gt=0)
    summary_trace_dir: Path = PROJECT_ROOT / "logs" / "summaries"

    upload_dir: Path = PROJECT_ROOT / "uploads"
    max_upload_size: int = Field(default=50 * 1024 * 1024, ge=1)
    frontend_dir: Path = PROJECT_ROOT / "frontend"
    log_level: str = "INFO"


_ENV_KEYS: dict[str, str] = {
    "openai_api_key": "OPENAI_API_KEY",
    "openai_base_url": "OPENAI_BASE_URL",
    "summary_model": "SUMMARY_MODEL",
    "summary_reasoning_effort": "SUMMARY_REASONING_EFFORT",
    "summary_chapter_max_tokens": "SUMMARY_CHAPTER_MAX_TOKENS",
    "summary_book_max_tokens": "SUMMARY_BOOK_MAX_TOKENS",
    "summary_chapter_timeout_s": "SUMMARY_CHAPTER_TIMEOUT_S",
    "summary_book_timeout_s": "SUMMARY_BOOK_TIMEOUT_S",
    "summary_retry_max": "SUMMARY_RETRY_MAX",
    "summary_backoff_s": "SUMMARY_BACKOFF_S",
    "summary_chapter_max_chars": "SUMMARY_CHAPTER_MAX_CHARS",
    "summary_trace": "SUMMARY_TRACE",
    "summary_error_display_s": "SUMMARY_ERROR_DISPLAY_S",
    "summary_job_ttl_s": "SUMMARY_JOB_TTL_S",
    "summary_trace_dir": "SUMMARY_TRACE_DIR",
    "upload_dir": "UPLOAD_DIR",
    "max_upload_size": "MAX_UPLOAD_SIZE",
    "frontend_dir": "FRONTEND_DIR",
    "log_level": "LOG_LEVEL",
}


def _read_environment() -> dict[str, str]:
    values: dict[str, str] = {}
    for field_name, env_key in _ENV_KEYS.items():
        raw = os.getenv(env_key)
        if raw is None:
            continue
        raw = raw.strip()
        if not raw:
            continue
        values[field_name] = raw
    return values


def _resolve_path(value: Path) -> Path:
    if value.is_absolute():
        return value
    return (PROJECT_ROOT / value).resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached :class:`Settings` instance."""

    settings = Settings(**_read_environment())
    return settings.model_copy(
        update={
            "summary_trace_dir": _resolve_path(settings.summary_trace_dir),
            "upload_dir": _resolve_path(settings.upload_dir),
            "frontend_dir": _resolve_path(settings.frontend_dir),
            "openai_base_url": settings.openai_base_url.rstrip("/"),
        }
    )


def reset_settings_cache() -> None:
    """Clear the cached settings (useful for tests)."""

    get_settings.cache_clear()


__all__ = ["PROJECT_ROOT", "Settings", "get_settings", "reset_settings_cache"]
