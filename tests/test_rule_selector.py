"""Tests for narrative rule ranking and structured rule matching."""

import pytest
from src.core.cdr.parser import CATEGORY_NAMES, parse
from src.core.cdr.selector import (
    CATEGORY_KEYWORDS,
    active_categories,
    contains_keyword,
    match_structured_rules,
    select_relevant_rules,
)


RANKING_CORPUS = """\
# CARDIOVASCULAR

## HEART Score

**Application:** Risk stratifies chest pain patients for cardiac events.

## Wells DVT

**Application:** Estimates probability of deep vein thrombosis with leg swelling.

# TRAUMA

## NEXUS Criteria

**Application:** Rules out cervical spine injury after blunt trauma.

# TOXICOLOGY

## Rumack-Matthew Nomogram

**Application:** Guides acetaminophen overdose treatment.
"""


@pytest.fixture
def catalog():
    return parse(RANKING_CORPUS)


def _names(rules):
    return [r.name for r in rules]


# ------------------------------------------------------------------
# Keyword matching
# ------------------------------------------------------------------

class TestKeywordMatching:
    def test_short_keywords_need_word_boundary(self):
        assert contains_keyword("history of mi last year", "mi") is True
        assert contains_keyword("vomiting since morning", "mi") is False

    def test_long_keywords_match_substrings(self):
        assert contains_keyword("recurrent chest pains", "chest pain") is True

    def test_category_triggers_cover_known_categories(self):
        assert set(CATEGORY_KEYWORDS) == set(CATEGORY_NAMES)

    def test_active_categories(self):
        active = active_categories("Fever and productive cough")
        assert "INFECTIOUS DISEASE" in active
        assert "PULMONARY" in active
        assert "TRAUMA" not in active


# ------------------------------------------------------------------
# Narrative ranking
# ------------------------------------------------------------------

class TestSelectRelevantRules:
    def test_single_match(self, catalog):
        assert _names(select_relevant_rules("chest pain and cardiac history", catalog)) == [
            "HEART Score"
        ]

    def test_sorted_by_hit_count(self, catalog):
        text = "Leg swelling, deep vein thrombosis suspected; also chest pain"
        assert _names(select_relevant_rules(text, catalog)) == ["Wells DVT", "HEART Score"]

    def test_ties_keep_catalog_order(self, catalog):
        text = "chest pain with leg swelling"
        assert _names(select_relevant_rules(text, catalog)) == ["HEART Score", "Wells DVT"]

    def test_inactive_category_not_scored(self, catalog):
        # Rule keywords hit, but nothing activates TOXICOLOGY
        assert select_relevant_rules("treatment guides nomogram", catalog) == []

    def test_active_category_without_hits(self, catalog):
        assert select_relevant_rules("palpitations", catalog) == []

    def test_case_insensitive(self, catalog):
        assert _names(select_relevant_rules("CERVICAL SPINE INJURY", catalog)) == [
            "NEXUS Criteria"
        ]

    def test_empty_text(self, catalog):
        assert select_relevant_rules("", catalog) == []

    def test_shipped_corpus(self, rule_catalog):
        text = "55 year old with chest pain and elevated troponin"
        selected = select_relevant_rules(text, rule_catalog.load())
        assert "HEART Score" in _names(selected)


# ------------------------------------------------------------------
# Structured matching
# ------------------------------------------------------------------

class TestMatchStructuredRules:
    def test_complaint_matches_diagnosis(self, definitions):
        matched = match_structured_rules(["Chest pain"], definitions)
        assert [r.id for r in matched] == ["heart", "perc", "wells_pe"]

    def test_diagnosis_contains_complaint(self, definitions):
        matched = match_structured_rules(["acute ankle injury with swelling"], definitions)
        assert [r.id for r in matched] == ["ottawa_ankle"]

    def test_name_in_cdr_context(self, definitions):
        matched = match_structured_rules(
            ["abdominal pain"], definitions, cdr_context=["Consider CURB-65 for severity"]
        )
        assert [r.id for r in matched] == ["curb65"]

    def test_full_name_in_cdr_context(self, definitions):
        matched = match_structured_rules(
            [], definitions, cdr_context=["apply the quick sequential organ failure assessment"]
        )
        assert [r.id for r in matched] == ["qsofa"]

    def test_deduplicated_by_id(self, definitions_by_id):
        heart = definitions_by_id["heart"]
        matched = match_structured_rules(["chest pain"], [heart, heart])
        assert matched == [heart]

    def test_blank_diagnoses_match_nothing(self, definitions):
        assert match_structured_rules(["", "  "], definitions) == []

    def test_empty_inputs(self, definitions):
        assert match_structured_rules([], definitions) == []
        assert match_structured_rules(["chest pain"], []) == []
