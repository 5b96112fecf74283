"""Vocabulary translation drill with spaced review."""

__version__ = "0.1.0"
