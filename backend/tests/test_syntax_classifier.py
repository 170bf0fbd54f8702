"""
Tests for the keyword syntax classifier.
"""

import pytest

from ppc_dashboard.services.syntax_classifier import (
    BAMBOO_TERMS,
    COOLING_TERMS,
    classify,
    detect_size,
    split_root,
)


@pytest.mark.parametrize("text", ["", "   ", "\t\n", None])
def test_blank_input_is_irrelevant(text):
    assert classify(text) == "Irrelevant"


def test_unmatched_text_falls_back_to_irrelevant():
    assert classify("random unrelated text xyz") == "Irrelevant"


def test_branded_term_wins_over_everything():
    assert classify("decolure bamboo sheets queen") == "Branded Keyword"


def test_competitor_precedes_bamboo():
    assert classify("bamboo bay sheets") == "Competitor Branded Keyword"


def test_irrelevant_precedes_bamboo():
    assert classify("bamboo sheets + pillowcases") == "Irrelevant"
    assert classify("bamboo mattress topper") == "Irrelevant"


def test_cooling_precedes_bamboo():
    # "bamboo cooling sheets" is in both term lists; cooling is checked first
    assert "bamboo cooling sheets" in COOLING_TERMS
    assert "bamboo cooling sheets" in BAMBOO_TERMS
    assert classify("bamboo cooling sheets") == "Cooling"


def test_cooling_with_size():
    assert classify("cooling sheets twin") == "Cooling|Twin"


def test_bamboo_sizes():
    assert classify("bamboo sheets queen") == "Bamboo|Queen"
    assert classify("bamboo sheets california king") == "Bamboo|California King"
    assert classify("bamboo sheets king size") == "Bamboo|King"
    assert classify("bamboo sheets full") == "Bamboo|Full"
    assert classify("bamboo sheets") == "Bamboo"


def test_misspellings_still_match():
    assert classify("bmaboo sheets") == "Bamboo"
    assert classify("sabanas bambu queen") == "Bamboo|Queen"


def test_generic():
    assert classify("deep pocket sheets") == "Generic"


def test_matching_is_case_insensitive():
    assert classify("BAMBOO Sheets QUEEN") == "Bamboo|Queen"


def test_short_terms_match_inside_longer_words():
    # "rest" is a competitor term and matches inside "forest"
    assert classify("forest green sheets") == "Competitor Branded Keyword"


def test_classification_is_repeatable():
    for text in ("bamboo sheets queen", "bamboo bay", "sheet", "", "xyz"):
        assert classify(text) == classify(text)


def test_detect_size_prefers_california_king():
    assert detect_size("california king bamboo") == "|California King"
    assert detect_size("king bamboo") == "|King"
    assert detect_size("bamboo") == ""


def test_split_root():
    assert split_root("Bamboo|Queen") == "Bamboo"
    assert split_root("Cooling|California King") == "Cooling"
    assert split_root("Generic") == "Generic"
    assert split_root("Bamboo |Queen") == "Bamboo"
