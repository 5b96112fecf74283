"""Narrow command interface between a front end and the learning core."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from vocab_drill.core.answer_matcher import (
    AnswerMatcher,
    PromptGroup,
    VerdictType,
    group_examples_by_prompt,
)
from vocab_drill.core.contractions import explain_contractions
from vocab_drill.core.models import Category, ProgressState, VocabularyItem
from vocab_drill.core.progress import ProgressSummary, ProgressTracker, record_attempt
from vocab_drill.core.queue import QueueEngine, ReplacementOutcome
from vocab_drill.core.repository import Repository
from vocab_drill.core.text_compare import ComparisonResult


logger = logging.getLogger(__name__)

WRONG_PROMPT_MESSAGE = (
    "That answer belongs to a different prompt. "
    "Please answer the one currently shown."
)
ALL_CAUGHT_UP_MESSAGE = "All items in this category are mastered. Nothing left to swap in."


class SubmitStatus(Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    WRONG_PROMPT = "wrong_prompt"
    EMPTY = "empty"
    ITEM_COMPLETE = "item_complete"
    NOTHING_TO_STUDY = "nothing_to_study"


@dataclass
class Prompt:
    """What the learner should translate next."""
    item: VocabularyItem
    group: PromptGroup
    completed: int
    total: int

    @property
    def text(self) -> Optional[str]:
        return self.group.prompt

    @property
    def grammar(self) -> Optional[str]:
        return self.group.grammar or self.item.grammar


@dataclass
class SubmitResult:
    """Outcome of one submitted answer.

    `clear_input` tells the front end to empty the answer box. Statistics
    are only recorded for CORRECT and INCORRECT.

    `notes` explain contraction swaps in an accepted answer. `near_miss`
    marks a wrong answer that is only a typo or two away.
    """
    status: SubmitStatus
    message: str = ""
    item: Optional[VocabularyItem] = None
    comparison: Optional[ComparisonResult] = None
    correct_answer: Optional[str] = None
    item_completed: bool = False
    replacement: Optional[ReplacementOutcome] = None
    clear_input: bool = False
    warnings: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    near_miss: bool = False

    @property
    def correct(self) -> bool:
        return self.status is SubmitStatus.CORRECT

    @property
    def all_caught_up(self) -> bool:
        return self.replacement is not None and self.replacement.all_caught_up


class LearningSession:
    """Drives one learner through the queue of a single category."""

    def __init__(
        self,
        repository: Repository,
        engine: QueueEngine,
        tracker: Optional[ProgressTracker] = None,
        state: Optional[ProgressState] = None,
        clock: Callable[[], datetime] = datetime.now,
        matcher: Optional[AnswerMatcher] = None,
    ):
        self.repository = repository
        self.engine = engine
        self.tracker = tracker or ProgressTracker()
        self.state = state
        self.clock = clock
        self.matcher = matcher or AnswerMatcher()
        self.category = Category.GENERAL
        self.completed_groups: set[str] = set()

    def _ensure_state(self, now: datetime) -> None:
        if self.state is None:
            self.state = self.tracker.initialize(self.repository, now)

    # Queue commands

    def start(self, category: Category = Category.GENERAL) -> Optional[VocabularyItem]:
        """Load progress and the queue, then land on the first item."""
        now = self.clock()
        self._ensure_state(now)
        self._build(category, now)
        return self.advance()

    def build_queue(self, category: Category) -> list[VocabularyItem]:
        """Restore or rebuild the queue for a category. Safe to repeat."""
        return self._build(category, self.clock())

    def _build(self, category: Category, now: datetime) -> list[VocabularyItem]:
        self.category = category
        self.completed_groups.clear()
        items = self.engine.load(category, now)
        if not items:
            logger.info("Nothing to study in %s", category.value)
        return items

    def switch_category(self, category: Category) -> Optional[VocabularyItem]:
        """Drop the current queue and start over in another category."""
        now = self.clock()
        self.category = category
        self.completed_groups.clear()
        self.engine.switch_category(category, now)
        return self.advance()

    def current(self) -> Optional[VocabularyItem]:
        return self.engine.current()

    def advance(self) -> Optional[VocabularyItem]:
        """Move to the next queued item with fresh per-item progress.

        Leaving the last slot of a short queue first tops it up with words
        added since it was built.
        """
        self.completed_groups.clear()
        engine = self.engine
        if 0 < len(engine) < engine.queue_size and engine.current_index == len(engine) - 1:
            engine.refill(self.clock())
        return engine.advance()

    def skip(self) -> Optional[VocabularyItem]:
        """Move on without recording anything for the current item."""
        item = self.current()
        if item is not None:
            logger.debug("Skipped '%s'", item.word)
        return self.advance()

    # Prompts

    def _groups(self, item: VocabularyItem) -> list[PromptGroup]:
        return group_examples_by_prompt(item.playable_examples())

    def _pending(self, groups: list[PromptGroup]) -> list[PromptGroup]:
        return [g for g in groups if g.key not in self.completed_groups]

    def current_prompt(self) -> Optional[Prompt]:
        """The first prompt of the current item not yet answered this pass."""
        item = self.current()
        if item is None:
            return None
        groups = self._groups(item)
        pending = self._pending(groups)
        if not pending:
            return None
        return Prompt(
            item=item,
            group=pending[0],
            completed=len(groups) - len(pending),
            total=len(groups),
        )

    # Answers

    def submit_answer(self, text: str) -> SubmitResult:
        """
        Grade an answer for the prompt on screen.

        Args:
            text: Raw user input

        Returns:
            A SubmitResult. Storage failures raise RepositoryError. When the
            attempt could not be stored nothing changes in memory; when only
            the progress write fails the prompt still counts as answered.
        """
        now = self.clock()

        if self.engine.is_empty:
            return SubmitResult(SubmitStatus.NOTHING_TO_STUDY, "No items available to study.")

        item = self.current()
        if item is None:
            item = self.advance()

        if not text or not text.strip():
            return SubmitResult(SubmitStatus.EMPTY, "Please type an answer.", item=item)

        groups = self._groups(item)
        pending = self._pending(groups)
        if not pending:
            return SubmitResult(
                SubmitStatus.ITEM_COMPLETE,
                "Every prompt of this word is done. Move on to the next one.",
                item=item,
                item_completed=True,
            )

        current_group = pending[0]
        verdict = self.matcher.grade(text, current_group, groups)

        if verdict.type is VerdictType.OTHER_PROMPT:
            return SubmitResult(
                SubmitStatus.WRONG_PROMPT,
                WRONG_PROMPT_MESSAGE,
                item=item,
                clear_input=True,
            )

        updated = record_attempt(item, verdict.is_correct, now)
        self.repository.update_attempt_stats(
            updated.id,
            updated.total_attempts,
            updated.correct_attempts,
            updated.memory_score,
            updated.last_10_attempts,
            updated.last_studied_at,
        )
        self.engine.update_item(updated)

        if not verdict.is_correct:
            best = verdict.best_match
            return SubmitResult(
                SubmitStatus.INCORRECT,
                verdict.comparison.error_details if verdict.comparison else "",
                item=updated,
                comparison=verdict.comparison,
                correct_answer=best.sentence if best else None,
                near_miss=verdict.near_miss,
            )

        result = self._accept(updated, current_group, groups, now)
        if verdict.best_match is not None:
            result.notes = explain_contractions(text, verdict.best_match.sentence)
        return result

    def _accept(
        self,
        item: VocabularyItem,
        group: PromptGroup,
        groups: list[PromptGroup],
        now: datetime,
    ) -> SubmitResult:
        # The attempt is already stored, so the group is done even if the
        # progress write below fails
        self.completed_groups.add(group.key)
        self._ensure_state(now)
        state = self.tracker.add_completed_word(self.state)
        self.repository.save_progress(state)
        self.state = state

        result = SubmitResult(
            SubmitStatus.CORRECT,
            "Correct!",
            item=item,
            item_completed=not self._pending(groups),
            clear_input=True,
        )

        if self.engine.is_mastered(item):
            outcome = self.engine.replace(item.id, now)
            result.replacement = outcome
            if outcome is not None and outcome.replacement is not None:
                # The replacement takes over the slot and starts a fresh pass
                self.completed_groups.clear()
                result.message = (
                    f"'{item.word}' mastered. Next up: '{outcome.replacement.word}'."
                )
            elif outcome is not None:
                result.warnings.append(ALL_CAUGHT_UP_MESSAGE)
        return result

    def progress_summary(self) -> ProgressSummary:
        now = self.clock()
        self._ensure_state(now)
        return self.tracker.summary(self.state, now)
