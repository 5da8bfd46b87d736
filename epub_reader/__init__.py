"""EPUB reader backend with AI chapter and book summaries."""
