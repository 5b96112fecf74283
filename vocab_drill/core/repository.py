"""Storage collaborator used by the queue, tracker and session."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from vocab_drill.core.models import Category, ProgressState, VocabularyItem


class RepositoryError(Exception):
    """Storage failure reported to the caller. No retries are attempted."""
    pass


class Repository(ABC):
    """Abstract store of vocabulary items, queue ids and progress."""

    @abstractmethod
    def get_all_items_with_examples(
        self, category: Optional[Category] = None
    ) -> list[VocabularyItem]:
        """
        Get every item, with its examples attached.

        Args:
            category: Restrict to one category when given

        Returns:
            Items in storage order
        """
        pass

    @abstractmethod
    def get_item_by_id(self, item_id: int) -> Optional[VocabularyItem]:
        """Get one item with its examples, or None if it no longer exists."""
        pass

    @abstractmethod
    def update_attempt_stats(
        self,
        item_id: int,
        total_attempts: int,
        correct_attempts: int,
        memory_score: float,
        last_10_attempts: list[bool],
        last_studied_at: Optional[datetime],
    ) -> None:
        """Persist the statistics of one attempt in a single write."""
        pass

    @abstractmethod
    def load_queue_ids(self) -> list[int]:
        """Load the persisted queue as an ordered list of item ids."""
        pass

    @abstractmethod
    def save_queue_ids(self, ids: list[int]) -> None:
        """Persist the queue as an ordered list of item ids."""
        pass

    @abstractmethod
    def load_progress(self) -> Optional[ProgressState]:
        """Load the learner's progress, or None if it was never created."""
        pass

    @abstractmethod
    def save_progress(self, state: ProgressState) -> None:
        """Persist the learner's progress."""
        pass
