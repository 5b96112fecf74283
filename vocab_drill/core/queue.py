"""Learning queue selection and replacement."""

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from vocab_drill.core.models import Category, MasteryRule, VocabularyItem
from vocab_drill.core.repository import Repository


logger = logging.getLogger(__name__)

HALF_LIFE_DAYS = 0.83
REVIEW_RATIO = 0.3
STALE_AFTER_DAYS = 1.0
DEFAULT_QUEUE_SIZE = 15
REPLACEMENT_CANDIDATES = 10

SECONDS_PER_DAY = 24 * 60 * 60


def days_since(item: VocabularyItem, now: datetime) -> float:
    """Days since the item was last studied, or since it was created."""
    reference = item.last_studied_at or item.created_at or now
    return max(0.0, (now - reference).total_seconds() / SECONDS_PER_DAY)


def effective_score(
    item: VocabularyItem,
    now: datetime,
    half_life_days: float = HALF_LIFE_DAYS,
) -> float:
    """Memory score attenuated by exponential decay since last study."""
    return item.memory_score * math.exp(-days_since(item, now) / half_life_days)


def review_priority(item: VocabularyItem, now: datetime) -> float:
    """Longer neglected, lower scoring items come first."""
    return days_since(item, now) * (1 - item.memory_score)


class TieBreak(Enum):
    """How items with equal scores are ordered."""
    NONE = "none"
    RECENCY = "recency"

    def key(self, item: VocabularyItem) -> tuple:
        if self is TieBreak.NONE:
            return ()
        last = item.last_studied_at.timestamp() if item.last_studied_at else 0.0
        created = item.created_at.timestamp() if item.created_at else 0.0
        # Least recently studied first, then newest created first
        return (last, -created)


def interleave_shuffle(
    items: Iterable[VocabularyItem],
    rng: Optional[random.Random] = None,
) -> list[VocabularyItem]:
    """Alternate easier and harder items so difficulty does not cluster.

    Items are split by memory score into a low half (the larger half when
    the count is odd) and a high half, each half is shuffled, and the
    result alternates high, low, high, low...
    """
    rng = rng or random.Random()
    ordered = sorted(items, key=lambda item: item.memory_score)
    half = math.ceil(len(ordered) / 2)
    low = ordered[:half]
    high = ordered[half:]
    rng.shuffle(low)
    rng.shuffle(high)

    result = []
    for i in range(max(len(low), len(high))):
        if i < len(high):
            result.append(high[i])
        if i < len(low):
            result.append(low[i])
    return result


@dataclass
class ReplacementOutcome:
    """What happened when a mastered item was due for replacement."""
    mastered: VocabularyItem
    replacement: Optional[VocabularyItem] = None
    position: int = -1

    @property
    def all_caught_up(self) -> bool:
        return self.replacement is None


class QueueEngine:
    """Maintains the bounded, duplicate-free working set for one category."""

    def __init__(
        self,
        repository: Repository,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        half_life_days: float = HALF_LIFE_DAYS,
        review_ratio: float = REVIEW_RATIO,
        mastery_rule: MasteryRule = MasteryRule.LIFETIME,
        tie_break: TieBreak = TieBreak.RECENCY,
        replacement_candidates: int = REPLACEMENT_CANDIDATES,
        rng: Optional[random.Random] = None,
    ):
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        if half_life_days <= 0:
            raise ValueError("half_life_days must be positive")
        if not 0 <= review_ratio <= 1:
            raise ValueError("review_ratio must be between 0 and 1")

        self.repository = repository
        self.queue_size = queue_size
        self.half_life_days = half_life_days
        self.review_ratio = review_ratio
        self.mastery_rule = mastery_rule
        self.tie_break = tie_break
        self.replacement_candidates = replacement_candidates
        self.rng = rng or random.Random()

        self.category: Optional[Category] = None
        self.current_index = -1
        self._items: list[VocabularyItem] = []
        self._generation = 0

    # Queue state

    @property
    def items(self) -> list[VocabularyItem]:
        return list(self._items)

    @property
    def ids(self) -> list[int]:
        return [item.id for item in self._items]

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def current(self) -> Optional[VocabularyItem]:
        if not self._items or not 0 <= self.current_index < len(self._items):
            return None
        return self._items[self.current_index]

    def advance(self) -> Optional[VocabularyItem]:
        """Move to the next slot, wrapping around at the end."""
        if not self._items:
            self.current_index = -1
            return None
        self.current_index = (self.current_index + 1) % len(self._items)
        return self._items[self.current_index]

    def update_item(self, item: VocabularyItem) -> None:
        """Swap in a fresher copy of an item already in the queue."""
        for i, queued in enumerate(self._items):
            if queued.id == item.id:
                self._items[i] = item
                return

    # Ranking

    def _urgency_key(self, now: datetime):
        def key(item: VocabularyItem) -> tuple:
            return (effective_score(item, now, self.half_life_days),) + self.tie_break.key(item)
        return key

    def _review_key(self, now: datetime):
        def key(item: VocabularyItem) -> tuple:
            return (-review_priority(item, now),) + self.tie_break.key(item)
        return key

    def _pool(self, category: Category) -> list[VocabularyItem]:
        """Category items that have something to practise."""
        items = self.repository.get_all_items_with_examples(category)
        return [
            item for item in items
            if item.category == category and item.playable_examples()
        ]

    def select(
        self,
        pool: list[VocabularyItem],
        count: int,
        exclude_ids: Iterable[int] = (),
        now: Optional[datetime] = None,
    ) -> list[VocabularyItem]:
        """
        Choose up to `count` items from the pool.

        Unmastered items fill most of the slots, lowest effective score
        first. Up to `review_ratio` of the slots go to mastered items not
        studied for more than a day, highest review priority first. Either
        side absorbs the other's shortfall. The selection is returned in
        interleaved order.
        """
        now = now or datetime.now()
        if count <= 0:
            return []

        excluded = set(exclude_ids)
        seen = set()
        unmastered = []
        stale = []
        for item in pool:
            if item.id in excluded or item.id in seen or not item.playable_examples():
                continue
            seen.add(item.id)
            if not self.mastery_rule.is_mastered(item):
                unmastered.append(item)
            elif days_since(item, now) > STALE_AFTER_DAYS:
                stale.append(item)

        review_take = min(math.floor(count * self.review_ratio), len(stale))
        new_take = min(count - review_take, len(unmastered))
        if review_take + new_take < count:
            review_take = min(len(stale), count - new_take)

        selected = sorted(unmastered, key=self._urgency_key(now))[:new_take]
        selected += sorted(stale, key=self._review_key(now))[:review_take]

        logger.debug(
            "Selected %d new and %d review items from a pool of %d",
            new_take, review_take, len(pool),
        )
        return interleave_shuffle(selected, self.rng)

    # Building

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _apply(self, category: Category, items: list[VocabularyItem]) -> None:
        unique = []
        seen = set()
        for item in items:
            if item.id not in seen:
                seen.add(item.id)
                unique.append(item)
        self.category = category
        self._items = unique
        self.current_index = -1
        self.repository.save_queue_ids(self.ids)

    def build(self, category: Category, now: datetime) -> list[VocabularyItem]:
        """Build a fresh queue for the category and persist it."""
        generation = self._next_generation()
        pool = self._pool(category)
        if generation != self._generation:
            logger.info("Discarding superseded queue build for %s", category.value)
            return self.items

        selected = self.select(pool, self.queue_size, now=now)
        self._apply(category, selected)
        if not selected:
            logger.info("No items available in %s", category.value)
        else:
            logger.info("Queue built for %s with %d items", category.value, len(selected))
        return self.items

    def load(self, category: Category, now: datetime) -> list[VocabularyItem]:
        """Restore the persisted queue, dropping stale ids and topping it up.

        Falls back to a fresh build when nothing usable was persisted.
        """
        generation = self._next_generation()
        saved_ids = self.repository.load_queue_ids()
        pool = self._pool(category)
        if generation != self._generation:
            logger.info("Discarding superseded queue load for %s", category.value)
            return self.items

        by_id = {item.id: item for item in pool}
        restored = []
        for item_id in saved_ids:
            item = by_id.pop(item_id, None)
            if item is not None:
                restored.append(item)
        dropped = len(saved_ids) - len(restored)
        if dropped:
            logger.info("Dropped %d stale queue entries", dropped)

        if not restored:
            return self.build(category, now)

        restored = restored[:self.queue_size]
        restored += self._top_up(pool, restored, now)
        self._apply(category, restored)
        return self.items

    def _top_up(
        self, pool: list[VocabularyItem], queued: list[VocabularyItem], now: datetime
    ) -> list[VocabularyItem]:
        missing = self.queue_size - len(queued)
        if missing <= 0:
            return []
        return self.select(pool, missing, exclude_ids=[i.id for i in queued], now=now)

    def refill(self, now: datetime) -> int:
        """Top the queue up to its target size. Returns how many were added."""
        if self.category is None:
            return 0
        missing = self.queue_size - len(self._items)
        if missing <= 0:
            return 0

        generation = self._next_generation()
        pool = self._pool(self.category)
        if generation != self._generation:
            return 0

        added = self._top_up(pool, self._items, now)
        if added:
            self._items.extend(added)
            self.repository.save_queue_ids(self.ids)
        return len(added)

    def switch_category(self, category: Category, now: datetime) -> list[VocabularyItem]:
        """Discard the current queue and rebuild for another category."""
        logger.info("Switching category to %s", category.value)
        self._items = []
        self.current_index = -1
        self.repository.save_queue_ids([])
        return self.build(category, now)

    # Replacement

    def is_mastered(self, item: VocabularyItem) -> bool:
        return self.mastery_rule.is_mastered(item)

    def replace(self, item_id: int, now: datetime) -> Optional[ReplacementOutcome]:
        """
        Swap a mastered item for a fresh candidate in the same slot.

        Returns None when the item is not queued. When no candidate exists
        the mastered item keeps its slot and the outcome reports that every
        item is caught up.
        """
        position = next(
            (i for i, item in enumerate(self._items) if item.id == item_id), -1
        )
        if position < 0 or self.category is None:
            return None

        mastered = self._items[position]
        pool = self._pool(self.category)
        queued = set(self.ids)
        candidates = sorted(
            (item for item in pool if item.id not in queued),
            key=self._urgency_key(now),
        )[:self.replacement_candidates]

        for candidate in interleave_shuffle(candidates, self.rng):
            if not candidate.playable_examples():
                continue
            self._items[position] = candidate
            self.repository.save_queue_ids(self.ids)
            logger.info(
                "Replaced '%s' with '%s' at position %d",
                mastered.word, candidate.word, position,
            )
            return ReplacementOutcome(mastered, candidate, position)

        logger.info("No replacement for '%s', all items caught up", mastered.word)
        return ReplacementOutcome(mastered, None, position)
