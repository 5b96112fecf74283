"""Tests for contractions, string comparison and answer grading."""

from vocab_drill.core.answer_matcher import (
    AnswerMatcher,
    VerdictType,
    find_best_match,
    group_examples_by_prompt,
    matches_any_sentence,
    matches_with_flexibility,
    normalize_answer,
)
from vocab_drill.core.contractions import (
    are_equivalent,
    contract_phrases,
    expand_contractions,
    explain_contractions,
    explain_equivalence,
)
from vocab_drill.core.models import Example
from vocab_drill.core.text_compare import (
    DifferenceType,
    calculate_similarity,
    compare_strings,
    fuzzy_match,
    fuzzy_score,
    levenshtein_distance,
    search_rank,
    tokenize_words,
)


def example(*sentences, vietnamese=None):
    return Example(vocabulary_id=1, sentences=list(sentences), vietnamese=vietnamese)


class TestContractions:
    """Test contraction expansion and equivalence."""

    def test_expand(self):
        assert expand_contractions("It's raining") == "it is raining"
        assert expand_contractions("I don't know.") == "i do not know"

    def test_contract(self):
        assert contract_phrases("I do not know") == "i don't know"

    def test_whole_words_only(self):
        # "itself" must not be touched by the "it's" rules
        assert expand_contractions("itself") == "itself"
        assert contract_phrases("cannonball") == "cannonball"

    def test_equivalent_ignores_case_and_final_punctuation(self):
        assert are_equivalent("it's raining", "It is raining.")
        assert are_equivalent("I can not go", "I can't go.")
        assert are_equivalent("I cannot go", "I can't go")

    def test_informal_forms(self):
        assert are_equivalent("I'm gonna leave", "I am going to leave")

    def test_not_equivalent(self):
        assert not are_equivalent("it is raining", "it was raining")
        assert not are_equivalent("", "anything")

    def test_explain_contractions_in_answer(self):
        assert explain_contractions("It's raining", "It is raining.") == [
            "'it's' = 'it is' (valid contraction)"
        ]
        assert explain_contractions("I can not go", "I can't go.") == [
            "'can't' = 'can not' (valid contraction)"
        ]

    def test_explain_contractions_nothing_swapped(self):
        assert explain_contractions("I don't know", "I don't know.") == []
        assert explain_contractions("It is late", "It is late") == []

    def test_explain(self):
        assert "valid contraction" in explain_equivalence("don't", "do not")
        assert "valid full form" in explain_equivalence("cannot", "can't")
        assert explain_equivalence("don't", "does not") == ""


class TestTextCompare:
    """Test similarity and the positional word diff."""

    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_similarity(self):
        assert calculate_similarity("kitten", "sitting") == 57
        assert calculate_similarity("Hello", "hello") == 100
        assert calculate_similarity("", "") == 100
        assert calculate_similarity("abc", "") == 0

    def test_tokenize_drops_punctuation(self):
        assert tokenize_words("Hello, world!  ") == ["Hello", "world"]

    def test_exact_match_short_circuit(self):
        result = compare_strings("Hello world.", "Hello world.")
        assert result.is_exact_match
        assert result.error_details == ""

    def test_word_diff_scenario(self):
        result = compare_strings("I go to school", "I went to the school")
        assert not result.is_exact_match

        wrong = [d for d in result.differences if d.type is DifferenceType.WRONG_WORD]
        assert wrong[0].position == 1
        assert wrong[0].user_word == "go"
        assert wrong[0].correct_word == "went"

        assert "went" in result.error_details
        assert "the" in result.error_details
        assert any(d.type is DifferenceType.MISSING_WORD for d in result.differences)

    def test_case_difference(self):
        result = compare_strings("i like tea", "I like tea")
        assert result.differences[0].type is DifferenceType.CASE_DIFFERENCE
        assert result.highlighted_user_answer == "{i} like tea"
        assert "Wrong case" in result.error_details

    def test_extra_word_highlighted(self):
        result = compare_strings("I like the tea", "I like tea")
        assert result.highlighted_user_answer == "I like [the] [tea]"

    def test_punctuation_counts(self):
        result = compare_strings("Yes I do", "Yes, I do.")
        assert result.punctuation.missing == {".": 1, ",": 1}
        assert "Missing punctuation" in result.error_details
        assert result.differences == []

    def test_extra_punctuation(self):
        result = compare_strings("Stop!!", "Stop")
        assert result.punctuation.extra == {"!": 2}
        assert "2x'!'" in result.error_details

    def test_fuzzy_match(self):
        assert fuzzy_match("Umbrella", "brel")
        assert fuzzy_match("umbrella", "umbla")
        assert not fuzzy_match("umbrella", "alum")

    def test_fuzzy_score_prefers_consecutive_letters(self):
        # 20 for the first letter, then 10 per adjacent hit
        assert fuzzy_score("rain", "ra") == 40
        assert fuzzy_score("rain", "rn") == 35
        assert fuzzy_score("brain", "ra") == 15

    def test_search_rank_order(self):
        assert search_rank("Rain", "rain") > search_rank("rainbow", "rain")
        assert search_rank("rainbow", "rain") > search_rank("ruin", "rin")


class TestMatching:
    """Test the per-example match decision."""

    def test_normalize(self):
        assert normalize_answer("  It’s   fine ") == "It's fine"

    def test_contraction_symmetry(self):
        assert matches_any_sentence("it's raining", example("It is raining."))
        assert matches_any_sentence("I can not go", example("I can't go."))

    def test_any_sentence_suffices(self):
        target = example("I am hungry.", "I'm starving.")
        assert matches_any_sentence("I am starving", target)

    def test_blank_answer_never_matches(self):
        assert not matches_any_sentence("   ", example("Hi."))

    def test_wrong_answer(self):
        assert not matches_any_sentence("It is snowing.", example("It is raining."))

    def test_flexible_threshold(self):
        target = example("I really love this city.")
        assert matches_with_flexibility("I realy love this city.", target)
        assert not matches_with_flexibility("I hate it.", target)


class TestBestMatch:
    """Test choosing the closest target sentence."""

    def test_exact_wins(self):
        best = find_best_match("I'm here.", ["I am there.", "I am here."])
        assert best.sentence == "I am here."
        assert best.is_exact
        assert best.similarity == 100

    def test_closest_by_similarity(self):
        best = find_best_match("She go home", ["He runs fast.", "She goes home."])
        assert best.sentence == "She goes home."
        assert not best.is_exact

    def test_no_sentences(self):
        assert find_best_match("anything", []) is None


class TestGrading:
    """Test grading with several prompts on one word."""

    def setup_method(self):
        self.matcher = AnswerMatcher()
        self.groups = group_examples_by_prompt([
            example("I am tired.", vietnamese="Toi met"),
            example("I'm exhausted.", vietnamese="toi  met"),
            example("She is tired.", vietnamese="Co ay met"),
            example("", vietnamese="Empty"),
        ])

    def test_groups_share_prompt(self):
        assert len(self.groups) == 2
        assert self.groups[0].sentences == ["I am tired.", "I'm exhausted."]
        assert self.groups[1].prompt == "Co ay met"

    def test_correct_for_current_prompt(self):
        verdict = self.matcher.grade("I am exhausted", self.groups[0], self.groups)
        assert verdict.type is VerdictType.CORRECT
        assert verdict.is_correct
        assert verdict.best_match.sentence == "I'm exhausted."

    def test_answer_for_other_prompt(self):
        verdict = self.matcher.grade("She's tired.", self.groups[0], self.groups)
        assert verdict.type is VerdictType.OTHER_PROMPT
        assert verdict.matched_group is self.groups[1]

    def test_incorrect_has_diff(self):
        verdict = self.matcher.grade("I am tire.", self.groups[0], self.groups)
        assert verdict.type is VerdictType.INCORRECT
        assert verdict.best_match.sentence == "I am tired."
        assert "tire" in verdict.comparison.error_details
        assert verdict.near_miss

    def test_unrelated_answer_is_not_near_miss(self):
        verdict = self.matcher.grade("You are wrong.", self.groups[0], self.groups)
        assert verdict.type is VerdictType.INCORRECT
        assert not verdict.near_miss
