"""String similarity and word-level diffs for answer feedback."""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


PUNCTUATION = ".,!?:;'\""

WRONG_MARKER = "[{}]"
CASE_MARKER = "{{{}}}"

# Split on anything that is not a letter or digit
WORD_SPLIT = re.compile(r"[\W_]+", re.UNICODE)


def levenshtein_distance(first: str, second: str) -> int:
    """Classic edit distance using a single DP row."""
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def calculate_similarity(first: str, second: str) -> int:
    """Case-insensitive similarity as an integer percentage (0-100)."""
    a = first.lower()
    b = second.lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 100
    distance = levenshtein_distance(a, b)
    return int(math.floor((longest - distance) / longest * 100 + 0.5))


def tokenize_words(text: str) -> list[str]:
    """Split text into words, dropping punctuation and empty tokens."""
    return [token for token in WORD_SPLIT.split(text.strip()) if token]


class DifferenceType(Enum):
    MISSING_WORD = "missing_word"
    EXTRA_WORD = "extra_word"
    WRONG_WORD = "wrong_word"
    CASE_DIFFERENCE = "case_difference"


@dataclass
class WordDifference:
    """One positional difference between the answer and the target."""
    position: int
    type: DifferenceType
    user_word: Optional[str]
    correct_word: Optional[str]

    @property
    def description(self) -> str:
        slot = self.position + 1
        if self.type is DifferenceType.MISSING_WORD:
            return f"Missing word '{self.correct_word}' at position {slot}"
        if self.type is DifferenceType.EXTRA_WORD:
            return f"Extra word '{self.user_word}' at position {slot}"
        if self.type is DifferenceType.CASE_DIFFERENCE:
            return (
                f"Wrong case: '{self.user_word}' instead of "
                f"'{self.correct_word}' at position {slot}"
            )
        return (
            f"Wrong word: '{self.user_word}' instead of "
            f"'{self.correct_word}' at position {slot}"
        )


@dataclass
class PunctuationReport:
    """Punctuation marks the answer lacks or has in excess, with counts."""
    missing: dict[str, int] = field(default_factory=dict)
    extra: dict[str, int] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.missing and not self.extra


@dataclass
class ComparisonResult:
    """Outcome of comparing a user's answer against one target sentence."""
    is_exact_match: bool
    error_details: str
    correct_answer: str
    highlighted_user_answer: str
    differences: list[WordDifference] = field(default_factory=list)
    punctuation: PunctuationReport = field(default_factory=PunctuationReport)


def find_word_differences(
    user_words: list[str],
    correct_words: list[str],
) -> list[WordDifference]:
    """Aligned, position-by-position word comparison."""
    differences = []
    for i in range(max(len(user_words), len(correct_words))):
        user_word = user_words[i] if i < len(user_words) else None
        correct_word = correct_words[i] if i < len(correct_words) else None

        if user_word is None:
            kind = DifferenceType.MISSING_WORD
        elif correct_word is None:
            kind = DifferenceType.EXTRA_WORD
        elif user_word == correct_word:
            continue
        elif user_word.lower() == correct_word.lower():
            kind = DifferenceType.CASE_DIFFERENCE
        else:
            kind = DifferenceType.WRONG_WORD
        differences.append(WordDifference(i, kind, user_word, correct_word))
    return differences


def compare_punctuation(user: str, correct: str) -> PunctuationReport:
    """Compare how often each punctuation mark appears in both strings."""
    report = PunctuationReport()
    for mark in PUNCTUATION:
        user_count = user.count(mark)
        correct_count = correct.count(mark)
        if correct_count > user_count:
            report.missing[mark] = correct_count - user_count
        elif user_count > correct_count:
            report.extra[mark] = user_count - correct_count
    return report


def _format_marks(marks: dict[str, int]) -> str:
    return ", ".join(
        f"'{mark}'" if count == 1 else f"{count}x'{mark}'"
        for mark, count in marks.items()
    )


def build_summary(
    differences: list[WordDifference],
    punctuation: PunctuationReport,
) -> str:
    """Render the differences as labelled lines for the learner."""
    if not differences and punctuation.is_empty():
        return ""

    def words_of(kind: DifferenceType) -> list[WordDifference]:
        return [d for d in differences if d.type is kind]

    lines = ["Compared with the closest sentence:"]

    missing = words_of(DifferenceType.MISSING_WORD)
    if missing:
        lines.append("Missing words: " + ", ".join(f"'{d.correct_word}'" for d in missing))

    extra = words_of(DifferenceType.EXTRA_WORD)
    if extra:
        lines.append("Extra words: " + ", ".join(f"'{d.user_word}'" for d in extra))

    wrong = words_of(DifferenceType.WRONG_WORD)
    if wrong:
        lines.append("Wrong words: " + ", ".join(
            f"'{d.user_word}'->'{d.correct_word}'" for d in wrong
        ))

    case = words_of(DifferenceType.CASE_DIFFERENCE)
    if case:
        lines.append("Wrong case: " + ", ".join(
            f"'{d.user_word}'->'{d.correct_word}'" for d in case
        ))

    if punctuation.missing:
        lines.append("Missing punctuation: " + _format_marks(punctuation.missing))
    if punctuation.extra:
        lines.append("Extra punctuation: " + _format_marks(punctuation.extra))

    return "\n".join(lines)


def highlight_user_words(
    user_words: list[str],
    differences: list[WordDifference],
) -> str:
    """Mark wrong or extra words and case slips in the user's answer."""
    by_position = {d.position: d.type for d in differences}
    highlighted = []
    for i, word in enumerate(user_words):
        kind = by_position.get(i)
        if kind in (DifferenceType.EXTRA_WORD, DifferenceType.WRONG_WORD):
            highlighted.append(WRONG_MARKER.format(word))
        elif kind is DifferenceType.CASE_DIFFERENCE:
            highlighted.append(CASE_MARKER.format(word))
        else:
            highlighted.append(word)
    return " ".join(highlighted)


def compare_strings(user_answer: str, correct_answer: str) -> ComparisonResult:
    """Compare an answer with a target sentence and explain the differences."""
    user = user_answer.strip()
    correct = correct_answer.strip()

    if user == correct:
        return ComparisonResult(True, "", correct, user)

    user_words = tokenize_words(user)
    correct_words = tokenize_words(correct)

    differences = find_word_differences(user_words, correct_words)
    punctuation = compare_punctuation(user, correct)

    return ComparisonResult(
        is_exact_match=False,
        error_details=build_summary(differences, punctuation),
        correct_answer=correct,
        highlighted_user_answer=highlight_user_words(user_words, differences),
        differences=differences,
        punctuation=punctuation,
    )


# Search ranking

EXACT_SCORE = 1000
SUBSTRING_SCORE = 500


def fuzzy_match(text: str, query: str) -> bool:
    """True if the query is a substring of the text or its letters occur in order."""
    text_lower = text.lower()
    query_lower = query.lower()
    if query_lower in text_lower:
        return True
    remaining = iter(text_lower)
    return all(char in remaining for char in query_lower)


def fuzzy_score(text: str, query: str) -> int:
    """Score an in-order match. Consecutive hits and a matching first letter rank higher."""
    text_lower = text.lower()
    query_lower = query.lower()
    if not query_lower:
        return 0

    score = 0
    query_index = 0
    last_match = -1
    for index, char in enumerate(text_lower):
        if query_index < len(query_lower) and char == query_lower[query_index]:
            score += 10 if index == last_match + 1 else 5
            last_match = index
            query_index += 1

    if text_lower.startswith(query_lower[0]):
        score += 20
    return score


def search_rank(word: str, query: str) -> int:
    """Rank a headword against a search query, exact matches first."""
    if word.strip().lower() == query.strip().lower():
        return EXACT_SCORE
    if query.strip().lower() in word.lower():
        return SUBSTRING_SCORE
    return fuzzy_score(word, query.strip())
