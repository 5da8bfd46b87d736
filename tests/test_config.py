from __future__ import annotations

from pathlib import Path

from epub_reader.config import PROJECT_ROOT, get_settings, reset_settings_cache


def test_defaults(monkeypatch) -> None:
    for key in ("UPLOAD_DIR", "SUMMARY_TRACE_DIR", "FRONTEND_DIR", "SUMMARY_BACKOFF_S"):
        monkeypatch.delenv(key, raising=False)
    reset_settings_cache()

    settings = get_settings()

    assert settings.openai_api_key is None
    assert settings.openai_base_url == "https://api.openai.com/v1"
    assert settings.summary_retry_max == 3
    assert settings.summary_backoff_s == 2.0
    assert settings.summary_chapter_timeout_s == 30.0
    assert settings.summary_book_timeout_s == 45.0
    assert settings.summary_trace is False
    assert settings.upload_dir == PROJECT_ROOT / "uploads"


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:11434/v1/")
    monkeypatch.setenv("SUMMARY_RETRY_MAX", "5")
    monkeypatch.setenv("SUMMARY_TRACE", "true")
    monkeypatch.setenv("UPLOAD_DIR", "data/uploads")
    monkeypatch.setenv("SUMMARY_MODEL", "   ")
    reset_settings_cache()

    settings = get_settings()

    assert settings.openai_api_key == "sk-env"
    assert settings.openai_base_url == "http://localhost:11434/v1"
    assert settings.summary_retry_max == 5
    assert settings.summary_trace is True
    assert settings.upload_dir == (PROJECT_ROOT / "data" / "uploads").resolve()
    assert settings.summary_model == "gpt-5-mini"


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()
    first = get_settings()
    reset_settings_cache()
    assert get_settings() is not first
    assert isinstance(first.upload_dir, Path)
