"""
Unit tests for similarity.py
"""
import pytest

from lingua_eval.services.evaluation.similarity import (
    exact_match,
    levenshtein,
    similarity,
    similarity_credit,
)


@pytest.mark.unit
class TestLevenshtein:
    """Edit distance"""

    def test_classic_pair(self):
        assert levenshtein("kitten", "sitting") == 3

    def test_symmetric(self):
        assert levenshtein("sitting", "kitten") == levenshtein("kitten", "sitting")

    def test_empty(self):
        assert levenshtein("", "abc") == 3
        assert levenshtein("", "") == 0


@pytest.mark.unit
class TestSimilarity:
    def test_two_empty_strings_are_identical(self):
        assert similarity("", "") == 1.0

    def test_nothing_in_common(self):
        assert similarity("abc", "xyz") == 0.0

    def test_ratio(self):
        assert similarity("abcd", "abxy") == 0.5


@pytest.mark.unit
class TestCredit:
    """Partial credit bands for short answers"""

    def test_exact_match_normalizes_case_and_space(self):
        assert exact_match("  Paris ", "paris") == 1.0
        assert exact_match("Rome", "paris") == 0.0

    def test_full_credit_for_identical(self):
        assert similarity_credit("Photosynthesis", "photosynthesis") == 1.0

    def test_three_quarter_band(self):
        # one edit out of six characters -> 0.83
        assert similarity_credit("colour", "color") == 0.75

    def test_half_band(self):
        assert similarity_credit("abcd", "abxy") == 0.5

    def test_no_credit(self):
        assert similarity_credit("abc", "xyz") == 0.0
