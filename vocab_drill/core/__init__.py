"""Core business logic - UI independent."""
from .models import Category, Example, MasteryRule, ProgressState, VocabularyItem
from .repository import Repository, RepositoryError

__all__ = [
    "Category",
    "Example",
    "MasteryRule",
    "ProgressState",
    "VocabularyItem",
    "Repository",
    "RepositoryError",
]
