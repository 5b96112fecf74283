"""Attempt history and the time-based learning goal."""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime

from vocab_drill.core.models import HISTORY_WINDOW, ProgressState, VocabularyItem
from vocab_drill.core.repository import Repository


logger = logging.getLogger(__name__)

MINUTES_PER_WORD = 5

LEVELS = [
    (100, "Master"),
    (80, "Advanced"),
    (60, "Intermediate"),
    (40, "Beginner"),
    (20, "Novice"),
]


def record_attempt(
    item: VocabularyItem,
    is_correct: bool,
    now: datetime,
) -> VocabularyItem:
    """Apply one attempt to an item and return the updated copy.

    This is the only place attempt statistics change. The original item is
    left untouched so a failed write never leaves a half-updated item.
    """
    history = list(item.last_10_attempts) + [bool(is_correct)]
    return replace(
        item,
        total_attempts=item.total_attempts + 1,
        correct_attempts=item.correct_attempts + (1 if is_correct else 0),
        last_10_attempts=history[-HISTORY_WINDOW:],
        last_studied_at=now,
    )


@dataclass
class ProgressSummary:
    """Snapshot of the learner's progress for display."""
    words_learned: int
    goal: int
    debt: int
    progress_percentage: int
    level: str
    elapsed_time: str
    time_status: str

    def to_dict(self) -> dict:
        return {
            "words_learned": self.words_learned,
            "goal": self.goal,
            "debt": self.debt,
            "progress_percentage": self.progress_percentage,
            "level": self.level,
            "elapsed_time": self.elapsed_time,
            "time_status": self.time_status,
        }


class ProgressTracker:
    """Pure computations over a caller-owned ProgressState.

    The goal grows by one word every `minutes_per_word` minutes since the
    immutable session start; debt is how far words learned lag behind it.
    """

    def __init__(self, minutes_per_word: float = MINUTES_PER_WORD):
        if minutes_per_word <= 0:
            raise ValueError("minutes_per_word must be positive")
        self.minutes_per_word = minutes_per_word

    def initialize(self, repository: Repository, now: datetime) -> ProgressState:
        """Load the stored progress, creating it on first use."""
        state = repository.load_progress()
        if state is None:
            state = ProgressState(session_start_time=now, words_learned=0)
            repository.save_progress(state)
            logger.info("Progress created, session starts at %s", now.isoformat())
        return state

    def add_completed_word(self, state: ProgressState) -> ProgressState:
        """Count one more completed prompt group."""
        return replace(state, words_learned=state.words_learned + 1)

    def elapsed_minutes(self, state: ProgressState, now: datetime) -> float:
        seconds = (now - state.session_start_time).total_seconds()
        return max(0.0, seconds / 60)

    def goal(self, state: ProgressState, now: datetime) -> int:
        return math.floor(self.elapsed_minutes(state, now) / self.minutes_per_word)

    def debt(self, state: ProgressState, now: datetime) -> int:
        return max(0, self.goal(state, now) - state.words_learned)

    def progress_percentage(self, state: ProgressState, now: datetime) -> int:
        goal = self.goal(state, now)
        if goal <= 0:
            return 0
        return min(100, math.floor(state.words_learned / goal * 100))

    def level(self, state: ProgressState, now: datetime) -> str:
        percentage = self.progress_percentage(state, now)
        for minimum, name in LEVELS:
            if percentage >= minimum:
                return name
        return "Starting"

    def time_status(self, state: ProgressState, now: datetime) -> str:
        """Colour hint for the UI: success, warning or danger."""
        debt = self.debt(state, now)
        if debt == 0:
            return "success"
        if debt < 5:
            return "warning"
        return "danger"

    def format_elapsed(self, state: ProgressState, now: datetime) -> str:
        """Elapsed time since session start as HH:MM:SS."""
        total_seconds = max(0, int((now - state.session_start_time).total_seconds()))
        hours, remainder = divmod(total_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def summary(self, state: ProgressState, now: datetime) -> ProgressSummary:
        return ProgressSummary(
            words_learned=state.words_learned,
            goal=self.goal(state, now),
            debt=self.debt(state, now),
            progress_percentage=self.progress_percentage(state, now),
            level=self.level(state, now),
            elapsed_time=self.format_elapsed(state, now),
            time_status=self.time_status(state, now),
        )
