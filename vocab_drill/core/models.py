"""Data models for the vocabulary drill."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


HISTORY_WINDOW = 10


class Category(Enum):
    """Independent learning pool a vocabulary item belongs to."""
    GENERAL = "GENERAL"
    TOEIC = "TOEIC"
    VSTEP = "VSTEP"
    SPEAKING = "SPEAKING"
    WRITING = "WRITING"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Category":
        """Parse a category name, falling back to GENERAL."""
        if not value:
            return cls.GENERAL
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.GENERAL


def parse_attempt_history(raw) -> tuple[list[bool], bool]:
    """Parse a stored rolling attempt history.

    Returns the parsed list and a success flag. Anything that is not a JSON
    array of booleans yields an empty history so the item starts fresh.
    """
    if raw is None or raw == "":
        return [], True
    if isinstance(raw, (list, tuple)):
        values = list(raw)
    else:
        try:
            values = json.loads(raw)
        except (TypeError, ValueError):
            return [], False
    if not isinstance(values, list) or not all(isinstance(v, bool) for v in values):
        return [], False
    return values[-HISTORY_WINDOW:], True


def serialize_attempt_history(history: list[bool]) -> str:
    """Serialize a rolling attempt history as a JSON array."""
    return json.dumps(list(history[-HISTORY_WINDOW:]))


def parse_sentences(raw) -> tuple[list[str], bool]:
    """Parse a stored sentence collection.

    Accepts a JSON array or newline separated text. Blank entries are
    dropped and duplicates removed, keeping the first occurrence. The flag
    is False when the input looked like JSON but could not be decoded.
    """
    if raw is None:
        return [], True
    ok = True
    if isinstance(raw, (list, tuple)):
        candidates = [str(s) for s in raw]
    else:
        text = str(raw).strip()
        candidates = None
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                ok = False
            else:
                if isinstance(parsed, list):
                    candidates = [str(s) for s in parsed]
                else:
                    ok = False
        if candidates is None:
            candidates = text.split("\n")

    sentences = []
    for sentence in candidates:
        sentence = sentence.strip()
        if sentence and sentence not in sentences:
            sentences.append(sentence)
    return sentences, ok


@dataclass
class Example:
    """A prompt with its acceptable target-language answers."""
    vocabulary_id: int
    sentences: list[str] = field(default_factory=list)
    vietnamese: Optional[str] = None
    grammar: Optional[str] = None
    id: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.sentences, _ = parse_sentences(self.sentences)

    def has_sentences(self) -> bool:
        return bool(self.sentences)

    def to_dict(self) -> dict:
        return {
            "sentences": list(self.sentences),
            "vietnamese": self.vietnamese,
            "grammar": self.grammar,
        }

    @classmethod
    def from_dict(cls, data: dict, vocabulary_id: int = 0) -> "Example":
        sentences, _ = parse_sentences(data.get("sentences", []))
        return cls(
            vocabulary_id=vocabulary_id,
            sentences=sentences,
            vietnamese=data.get("vietnamese"),
            grammar=data.get("grammar"),
        )


@dataclass
class VocabularyItem:
    """A headword with its learning statistics and examples."""
    id: int
    word: str
    category: Category = Category.GENERAL
    total_attempts: int = 0
    correct_attempts: int = 0
    last_10_attempts: list[bool] = field(default_factory=list)
    last_studied_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    grammar: Optional[str] = None
    examples: list[Example] = field(default_factory=list)

    @property
    def memory_score(self) -> float:
        """Lifetime accuracy in [0, 1]."""
        if self.total_attempts <= 0:
            return 0.0
        return self.correct_attempts / self.total_attempts

    @property
    def last_10_correct(self) -> int:
        return sum(1 for attempt in self.last_10_attempts if attempt)

    def last_10_percentage(self) -> float:
        """Percentage of correct answers in the rolling window."""
        if not self.last_10_attempts:
            return 0.0
        return self.last_10_correct / len(self.last_10_attempts) * 100

    def playable_examples(self) -> list[Example]:
        """Examples that still have at least one acceptable sentence."""
        return [e for e in self.examples if e.has_sentences()]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON word packs."""
        return {
            "word": self.word,
            "category": self.category.value,
            "grammar": self.grammar,
            "examples": [e.to_dict() for e in self.examples],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VocabularyItem":
        """Create from a word pack entry. Statistics start at zero."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        return cls(
            id=data.get("id", 0),
            word=data["word"].strip(),
            category=Category.from_string(data.get("category")),
            grammar=data.get("grammar"),
            created_at=created_at,
            examples=[Example.from_dict(e) for e in data.get("examples", [])],
        )


@dataclass(frozen=True)
class ProgressState:
    """Global learning progress for the single learner.

    `session_start_time` anchors the goal curve and cannot change once the
    state exists; `words_learned` only ever grows.
    """
    session_start_time: datetime
    words_learned: int = 0


class MasteryRule(Enum):
    """Which definition of "mastered" gates queue replacement."""
    LIFETIME = "lifetime"
    ROLLING_WINDOW = "rolling_window"

    def is_mastered(self, item: VocabularyItem) -> bool:
        if self is MasteryRule.ROLLING_WINDOW:
            return passes_rolling_window(item)
        return has_passed(item)


MASTERY_MIN_ATTEMPTS = 10
MASTERY_THRESHOLD = 0.7
ROLLING_REQUIRED_CORRECT = 7


def has_passed(item: VocabularyItem) -> bool:
    """Lifetime mastery: at least 10 attempts with 70% accuracy."""
    return (
        item.total_attempts >= MASTERY_MIN_ATTEMPTS
        and item.memory_score >= MASTERY_THRESHOLD
    )


def passes_rolling_window(item: VocabularyItem) -> bool:
    """Rolling mastery: at least 7 of the last 10 attempts were correct."""
    return item.last_10_correct >= ROLLING_REQUIRED_CORRECT
