"""Tests for organization name fuzzy matching."""

import pytest

from referral_loop.fuzzy import fuzzy_name_match, levenshtein_distance, normalize_name, token_jaccard


class TestNormalizeName:

    def test_lowercases_and_strips_suffixes(self):
        assert normalize_name("Valley Cardiology Associates LLC") == "valley cardiology"

    def test_punctuation_becomes_whitespace(self):
        assert normalize_name("St. Mary's Hospital") == "st mary s hospital"

    def test_slashes_parens_and_hyphens(self):
        assert normalize_name("Ortho/Spine (North)-West") == "ortho spine north west"

    def test_all_boilerplate_keeps_original_tokens(self):
        assert normalize_name("LLC Medical") == "llc medical"

    def test_collapses_whitespace(self):
        assert normalize_name("  Valley   Cardiology  ") == "valley cardiology"


class TestLevenshteinDistance:

    def test_identical_strings(self):
        assert levenshtein_distance("hello", "hello") == 0

    def test_single_substitution(self):
        assert levenshtein_distance("cat", "bat") == 1

    def test_kitten_sitting(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_empty_string(self):
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "") == 3
        assert levenshtein_distance("", "") == 0

    @pytest.mark.parametrize("a,b", [("flaw", "lawn"), ("valley", "alley"), ("abc", "xyz123")])
    def test_symmetric(self, a, b):
        assert levenshtein_distance(a, b) == levenshtein_distance(b, a)


class TestTokenJaccard:

    def test_both_empty_is_zero(self):
        assert token_jaccard("", "") == 0.0

    def test_partial_overlap(self):
        assert token_jaccard("valley cardiology", "valley heart") == pytest.approx(1 / 3)

    def test_order_does_not_matter(self):
        assert token_jaccard("cardiology valley", "valley cardiology") == 1.0


class TestFuzzyNameMatch:

    def test_exact_match(self):
        assert fuzzy_name_match("Valley Cardiology", "Valley Cardiology") == 1.0

    def test_case_insensitive(self):
        assert fuzzy_name_match("ABC", "abc") == 1.0
        assert fuzzy_name_match("valley cardiology", "Valley Cardiology") == 1.0

    def test_suffixes_ignored(self):
        assert fuzzy_name_match("Valley Cardiology", "Valley Cardiology Associates LLC") >= 0.7
        assert fuzzy_name_match("Valley Cardiology Associates", "Valley Cardiology") >= 0.8

    def test_punctuation_drift(self):
        assert fuzzy_name_match("St. Mary's Hospital", "St Marys Hospital") >= 0.9

    def test_unrelated_names(self):
        assert fuzzy_name_match("Valley Cardiology", "Metro Orthopedic Group") < 0.3

    @pytest.mark.parametrize("a,b", [
        ("", ""),
        ("", "Valley Cardiology"),
        ("LLC", "Inc"),
        ("A", "Zzzzzzzzzzzzzzzz"),
        ("Mercy General Hospital", "Mercy General"),
    ])
    def test_bounded(self, a, b):
        assert 0.0 <= fuzzy_name_match(a, b) <= 1.0
