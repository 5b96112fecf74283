"""Storage layer - SQLite and JSON word packs."""
from .database import Database
from .files import WordPackStorage

__all__ = [
    "Database",
    "WordPackStorage",
]
