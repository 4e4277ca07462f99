"""Chitin - natural-language shell assistant daemon."""

__version__ = "0.1.0"
