"""Unit tests for text folding and fuzzy scoring."""

import pytest

from summon.engine.algorithms import (
    PATH_PENALTY, TYPE_WEIGHTS, FuzzyMatcher, fold_query, fold_text, score_candidate
)
from summon.engine.models import ItemType


@pytest.fixture
def matcher():
    return FuzzyMatcher()


class TestFolding:
    """Test case and diacritic folding."""

    def test_ascii_lowercased(self):
        folded = fold_text("Visual Studio")
        assert folded.text == "visual studio"
        assert folded.positions == tuple(range(len("Visual Studio")))

    def test_diacritics_dropped(self):
        folded = fold_text("Café")
        assert folded.text == "cafe"
        assert folded.positions == (0, 1, 2, 3)

    def test_expanding_fold_keeps_original_offsets(self):
        # ß folds to two characters that both point at offset 4
        folded = fold_text("Straße")
        assert folded.text == "strasse"
        assert folded.positions == (0, 1, 2, 3, 4, 4, 5)

    def test_query_strips_outer_whitespace(self):
        assert fold_query("  Calc  ") == "calc"
        assert fold_query("   ") == ""


class TestFuzzyMatcher:
    """Test subsequence matching and scoring."""

    def test_exact_match(self, matcher):
        match = matcher.match("Safari", "Safari")
        assert match is not None
        assert match.score > 0

    def test_fuzzy_match(self, matcher):
        assert matcher.match("Visual Studio Code", "vsc") is not None
        assert matcher.match("Safari", "saf") is not None

    def test_no_match(self, matcher):
        assert matcher.match("Safari", "xyz") is None
        assert matcher.match("Safari", "fas") is None  # order matters

    def test_query_longer_than_candidate(self, matcher):
        assert matcher.match("Go", "golang") is None

    def test_case_insensitive(self, matcher):
        upper = matcher.match("Safari", "SAFARI")
        lower = matcher.match("Safari", "safari")
        assert upper is not None and lower is not None
        assert upper.score == lower.score

    def test_diacritic_insensitive(self, matcher):
        match = matcher.match("Café Royal", "cafe")
        assert match is not None
        assert match.indices == (0, 1, 2, 3)
        assert matcher.match("Straße", "strasse") is not None

    def test_match_indices_scattered(self, matcher):
        # backward pass tightens "s" onto Studio rather than viSual
        match = matcher.match("Visual Studio Code", "vsc")
        assert match.indices == (0, 7, 14)

    def test_match_indices_substring(self, matcher):
        match = matcher.match("My Calculator", "calc")
        assert match.indices == (3, 4, 5, 6)

    def test_substring_prefers_word_start(self, matcher):
        # "code" also occurs inside "Xcode"; the word "Code" is preferred
        match = matcher.match("Xcode Code", "code")
        assert match.indices == (6, 7, 8, 9)
        inner_only = matcher.match("Xcode Cxde", "code")
        assert inner_only.indices == (1, 2, 3, 4)
        assert match.score > inner_only.score

    def test_substring_falls_back_to_earliest(self, matcher):
        assert matcher.match("xxcalcxxcalc", "calc").indices == (2, 3, 4, 5)

    def test_exact_beats_prefix(self, matcher):
        exact = matcher.match("calc", "calc")
        prefix = matcher.match("calcs", "calc")
        assert exact.score > prefix.score

    def test_prefix_beats_substring(self, matcher):
        prefix = matcher.match("calcxxxx", "calc")
        substring = matcher.match("xxxxcalc", "calc")
        assert prefix.score > substring.score

    def test_substring_beats_scattered(self, matcher):
        substring = matcher.match("xxcalcxx", "calc")
        scattered = matcher.match("cxaxlxcx", "calc")
        assert substring is not None and scattered is not None
        assert substring.score > scattered.score

    def test_contiguous_beats_fragmented(self, matcher):
        contiguous = matcher.match("abcdxxxx", "abcd")
        fragmented = matcher.match("abxxcdxx", "abcd")
        assert contiguous.score > fragmented.score

    def test_shorter_candidate_wins(self, matcher):
        short = matcher.match("Calculator", "calc")
        long = matcher.match("Calculators", "calc")
        assert short.score > long.score

    def test_word_boundary_bonus(self, matcher):
        boundary = matcher.match("foo bar", "b")
        inside = matcher.match("foo abr", "b")
        assert boundary.score > inside.score

    def test_camel_case_boundary_bonus(self, matcher):
        camel = matcher.match("fooBar", "b")
        flat = matcher.match("foobar", "b")
        assert camel.score > flat.score


class TestScoreCandidate:
    """Test field and type weighting."""

    def test_every_item_type_has_weight(self):
        assert set(TYPE_WEIGHTS) == set(ItemType)

    def test_name_match_beats_path_match(self, matcher):
        by_name = score_candidate(matcher, fold_text("notes"), fold_text("/x"), ItemType.FILE, "notes")
        by_path = score_candidate(matcher, fold_text("x"), fold_text("notes"), ItemType.FILE, "notes")
        assert by_name[1] == "name"
        assert by_path[1] == "path"
        assert by_name[0] > by_path[0]

    def test_path_score_is_halved_and_penalized(self, matcher):
        raw = matcher.match("/docs/notes", "notes").score
        hit = score_candidate(
            matcher, fold_text("x"), fold_text("/docs/notes"), ItemType.CLIPBOARD_ENTRY, "notes"
        )
        assert hit[0] == raw // 2 - PATH_PENALTY

    def test_no_match_returns_none(self, matcher):
        assert score_candidate(matcher, fold_text("abc"), fold_text("/abc"), ItemType.FILE, "xyz") is None

    def test_type_weight_applied(self, matcher):
        app = score_candidate(matcher, fold_text("Notes"), fold_text(""), ItemType.APPLICATION, "notes")
        clip = score_candidate(matcher, fold_text("Notes"), fold_text(""), ItemType.CLIPBOARD_ENTRY, "notes")
        assert app[0] - clip[0] == TYPE_WEIGHTS[ItemType.APPLICATION]
