"""Shared helpers: logging configuration and run tracing."""
