"""Grading free-text answers against an item's example sentences."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from vocab_drill.core.contractions import are_equivalent, expand_contractions
from vocab_drill.core.models import Example
from vocab_drill.core.text_compare import (
    ComparisonResult,
    calculate_similarity,
    compare_strings,
)


logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_QUOTES = str.maketrans({
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
})


def normalize_answer(text: str) -> str:
    """Trim, collapse whitespace and straighten typographic quotes."""
    return _WHITESPACE.sub(" ", text.translate(_QUOTES)).strip()


def sentence_matches(answer: str, sentence: str) -> bool:
    """Exact normalized match, or equivalence modulo contractions."""
    normalized_answer = normalize_answer(answer)
    normalized_sentence = normalize_answer(sentence)
    if normalized_answer == normalized_sentence:
        return True
    return are_equivalent(normalized_answer, normalized_sentence)


def matches_any_sentence(answer: str, example: Example) -> bool:
    """Whether the answer satisfies any acceptable sentence of the example."""
    if not answer or not answer.strip():
        return False
    return any(sentence_matches(answer, s) for s in example.sentences)


@dataclass
class BestMatch:
    """The target sentence closest to an answer."""
    sentence: str
    similarity: int
    is_exact: bool


def find_best_match(answer: str, sentences: list[str]) -> Optional[BestMatch]:
    """Pick the sentence to compare an answer against.

    Exact and contraction matches win outright. Otherwise the sentence with
    the highest similarity is chosen, scoring both the raw strings and their
    fully expanded forms and keeping the higher of the two. Ties keep the
    earlier sentence.
    """
    if not sentences:
        return None

    normalized_answer = normalize_answer(answer)
    for sentence in sentences:
        if normalize_answer(sentence) == normalized_answer:
            return BestMatch(sentence, 100, True)
    for sentence in sentences:
        if are_equivalent(normalized_answer, normalize_answer(sentence)):
            return BestMatch(sentence, 100, True)

    best = None
    for sentence in sentences:
        score = max(
            calculate_similarity(answer, sentence),
            calculate_similarity(
                expand_contractions(answer), expand_contractions(sentence)
            ),
        )
        if best is None or score > best.similarity:
            best = BestMatch(sentence, score, False)
    return best


def matches_with_flexibility(
    answer: str,
    example: Example,
    threshold: int = 90,
) -> bool:
    """Lenient check that also accepts near misses above a similarity threshold."""
    if matches_any_sentence(answer, example):
        return True
    normalized = normalize_answer(answer)
    return any(
        calculate_similarity(normalized, normalize_answer(s)) >= threshold
        for s in example.sentences
    )


@dataclass
class PromptGroup:
    """All examples sharing one source-language prompt.

    Several examples may carry the same Vietnamese gloss with different
    English phrasings; answering any of them completes the group once.
    """
    key: str
    prompt: Optional[str]
    examples: list[Example] = field(default_factory=list)

    @property
    def sentences(self) -> list[str]:
        sentences = []
        for example in self.examples:
            for sentence in example.sentences:
                if sentence not in sentences:
                    sentences.append(sentence)
        return sentences

    @property
    def grammar(self) -> Optional[str]:
        for example in self.examples:
            if example.grammar and example.grammar.strip():
                return example.grammar
        return None


def _group_key(vietnamese: Optional[str]) -> str:
    return normalize_answer(vietnamese or "").lower()


def group_examples_by_prompt(examples: list[Example]) -> list[PromptGroup]:
    """Group playable examples by their prompt, in first-seen order."""
    groups: dict[str, PromptGroup] = {}
    for example in examples:
        if not example.has_sentences():
            continue
        key = _group_key(example.vietnamese)
        if key not in groups:
            groups[key] = PromptGroup(key=key, prompt=example.vietnamese)
        groups[key].examples.append(example)
    return list(groups.values())


class VerdictType(Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    OTHER_PROMPT = "other_prompt"


@dataclass
class Verdict:
    """Result of grading one answer."""
    type: VerdictType
    matched_group: Optional[PromptGroup] = None
    best_match: Optional[BestMatch] = None
    comparison: Optional[ComparisonResult] = None
    near_miss: bool = False

    @property
    def is_correct(self) -> bool:
        return self.type is VerdictType.CORRECT


class AnswerMatcher:
    """Grades answers for the prompt currently on screen."""

    def grade(
        self,
        answer: str,
        current: PromptGroup,
        groups: list[PromptGroup],
    ) -> Verdict:
        """Grade an answer against the displayed prompt.

        Args:
            answer: Raw user input
            current: The prompt group being displayed
            groups: Every prompt group of the item, completed or not

        Returns:
            CORRECT when the answer fits the current prompt, OTHER_PROMPT when
            it fits some other prompt of the same item instead, otherwise
            INCORRECT with a diff against the closest current sentence.
        """
        if any(sentence_matches(answer, s) for s in current.sentences):
            return Verdict(
                VerdictType.CORRECT,
                matched_group=current,
                best_match=find_best_match(answer, current.sentences),
            )

        for group in groups:
            if group.key == current.key:
                continue
            if any(sentence_matches(answer, s) for s in group.sentences):
                logger.debug("Answer matched another prompt: %r", group.prompt)
                return Verdict(VerdictType.OTHER_PROMPT, matched_group=group)

        best = find_best_match(answer, current.sentences)
        comparison = compare_strings(answer, best.sentence) if best else None
        return Verdict(
            VerdictType.INCORRECT,
            best_match=best,
            comparison=comparison,
            near_miss=any(matches_with_flexibility(answer, e) for e in current.examples),
        )
