"""English contraction handling for answer matching.

Lets "it's" match "it is", "don't" match "do not" and so on. All
substitutions are whole-word regex replacements so unrelated text such as
"itself" or "cannon" is never touched.
"""

import re


# Contracted form -> expanded forms. The first expansion is canonical.
CONTRACTIONS: dict[str, list[str]] = {
    # be
    "i'm": ["i am"],
    "you're": ["you are"],
    "he's": ["he is", "he has"],
    "she's": ["she is", "she has"],
    "it's": ["it is", "it has"],
    "we're": ["we are"],
    "they're": ["they are"],
    "that's": ["that is", "that has"],
    "there's": ["there is", "there has"],
    "here's": ["here is", "here has"],
    "who's": ["who is", "who has"],
    "what's": ["what is", "what has"],
    "where's": ["where is", "where has"],
    "when's": ["when is", "when has"],
    "why's": ["why is", "why has"],
    "how's": ["how is", "how has"],

    # negatives
    "isn't": ["is not"],
    "aren't": ["are not"],
    "wasn't": ["was not"],
    "weren't": ["were not"],
    "haven't": ["have not"],
    "hasn't": ["has not"],
    "hadn't": ["had not"],
    "won't": ["will not"],
    "wouldn't": ["would not"],
    "don't": ["do not"],
    "doesn't": ["does not"],
    "didn't": ["did not"],
    "can't": ["cannot", "can not"],
    "couldn't": ["could not"],
    "shouldn't": ["should not"],
    "mightn't": ["might not"],
    "mustn't": ["must not"],
    "needn't": ["need not"],

    # will / shall
    "i'll": ["i will", "i shall"],
    "you'll": ["you will", "you shall"],
    "he'll": ["he will", "he shall"],
    "she'll": ["she will", "she shall"],
    "it'll": ["it will", "it shall"],
    "we'll": ["we will", "we shall"],
    "they'll": ["they will", "they shall"],
    "that'll": ["that will", "that shall"],

    # would / had
    "i'd": ["i would", "i had"],
    "you'd": ["you would", "you had"],
    "he'd": ["he would", "he had"],
    "she'd": ["she would", "she had"],
    "it'd": ["it would", "it had"],
    "we'd": ["we would", "we had"],
    "they'd": ["they would", "they had"],
    "that'd": ["that would", "that had"],

    # have
    "i've": ["i have"],
    "you've": ["you have"],
    "we've": ["we have"],
    "they've": ["they have"],
    "could've": ["could have"],
    "should've": ["should have"],
    "would've": ["would have"],
    "might've": ["might have"],
    "must've": ["must have"],

    # informal
    "ain't": ["am not", "is not", "are not", "has not", "have not"],
    "gonna": ["going to"],
    "wanna": ["want to"],
    "gotta": ["got to", "have got to"],
    "oughta": ["ought to"],

    "let's": ["let us"],
    "ma'am": ["madam"],
    "o'clock": ["of the clock"],
    "y'all": ["you all"],
}


def _build_full_form_map() -> dict[str, list[str]]:
    full_forms: dict[str, list[str]] = {}
    for contraction, expansions in CONTRACTIONS.items():
        for expansion in expansions:
            full_forms.setdefault(expansion, []).append(contraction)
    return full_forms


FULL_FORMS = _build_full_form_map()


def _word_pattern(phrase: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE)


_CONTRACTION_PATTERNS = {
    contraction: _word_pattern(contraction) for contraction in CONTRACTIONS
}

_EXPAND_RULES = [
    (_CONTRACTION_PATTERNS[contraction], expansions[0])
    for contraction, expansions in CONTRACTIONS.items()
]

_CONTRACT_RULES = [
    (_word_pattern(full_form), contractions[0])
    for full_form, contractions in FULL_FORMS.items()
]

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCTUATION = re.compile(r"[.!?]+$")


def canonicalize(text: str) -> str:
    """Lower-case, straighten quotes, collapse spaces, drop end punctuation."""
    if not text:
        return ""
    canonical = (
        text.lower()
        .replace("’", "'")
        .replace("‘", "'")
        .replace("“", '"')
        .replace("”", '"')
    )
    canonical = _WHITESPACE.sub(" ", canonical).strip()
    return _TRAILING_PUNCTUATION.sub("", canonical).strip()


def expand_contractions(text: str) -> str:
    """Replace every known contraction with its canonical expansion."""
    result = canonicalize(text)
    for pattern, expansion in _EXPAND_RULES:
        result = pattern.sub(expansion, result)
    return _WHITESPACE.sub(" ", result).strip()


def contract_phrases(text: str) -> str:
    """Replace every expandable phrase with its contraction."""
    result = canonicalize(text)
    for pattern, contraction in _CONTRACT_RULES:
        result = pattern.sub(contraction, result)
    return _WHITESPACE.sub(" ", result).strip()


def are_equivalent(first: str, second: str) -> bool:
    """Check whether two sentences match once contractions are accounted for."""
    if not first or not second:
        return False

    canonical_first = canonicalize(first)
    canonical_second = canonicalize(second)
    if canonical_first == canonical_second:
        return True

    if expand_contractions(canonical_first) == expand_contractions(canonical_second):
        return True

    return contract_phrases(canonical_first) == contract_phrases(canonical_second)


def explain_contractions(answer: str, sentence: str) -> list[str]:
    """Notes for each contraction used on one side and spelled out on the other."""
    canonical_answer = canonicalize(answer)
    canonical_sentence = canonicalize(sentence)
    notes = []
    for contraction, expansions in CONTRACTIONS.items():
        pattern = _CONTRACTION_PATTERNS[contraction]
        in_answer = bool(pattern.search(canonical_answer))
        if in_answer == bool(pattern.search(canonical_sentence)):
            continue
        other = canonical_sentence if in_answer else canonical_answer
        for expansion in expansions:
            if _word_pattern(expansion).search(other):
                notes.append(explain_equivalence(contraction, expansion))
                break
    return notes


def explain_equivalence(contraction: str, full_form: str) -> str:
    """Short note telling the learner that two forms are interchangeable.

    Returns an empty string when the pair is not in the table.
    """
    contraction_lower = contraction.lower().strip()
    full_form_lower = full_form.lower().strip()

    if full_form_lower in CONTRACTIONS.get(contraction_lower, []):
        return f"'{contraction}' = '{full_form}' (valid contraction)"
    # Arguments given the other way round
    if full_form_lower in FULL_FORMS.get(contraction_lower, []):
        return f"'{contraction}' = '{full_form}' (valid full form)"
    return ""
