"""Tests for rating taxonomy integrity — enums, parsing, uniqueness."""

from __future__ import annotations

import pytest

from analyst_tracker.taxonomy.rating_taxonomy import (
    AnalystOrderField,
    AnalystTier,
    EvaluationOutcome,
    RecommendationAction,
    RecommendationStatus,
)


class TestRecommendationAction:
    def test_exactly_three_actions(self):
        assert {a.value for a in RecommendationAction} == {"BUY", "HOLD", "SELL"}

    @pytest.mark.parametrize("raw", ["buy", "BUY", " Buy ", "bUy"])
    def test_parse_is_case_insensitive(self, raw):
        assert RecommendationAction.parse(raw) == RecommendationAction.BUY

    def test_parse_passes_enum_through(self):
        assert RecommendationAction.parse(RecommendationAction.SELL) is RecommendationAction.SELL

    @pytest.mark.parametrize("raw", ["", "STRONG_BUY", "hold!", "outperform"])
    def test_parse_rejects_unknown(self, raw):
        with pytest.raises(ValueError, match="action must be one of"):
            RecommendationAction.parse(raw)

    def test_str_enum_compares_to_string(self):
        assert RecommendationAction.HOLD == "HOLD"


class TestClosedVocabularies:
    def test_status_values(self):
        assert [s.value for s in RecommendationStatus] == ["OPEN", "CLOSED"]

    def test_outcome_values(self):
        assert {o.value for o in EvaluationOutcome} == {"CORRECT", "NEUTRAL", "INCORRECT"}

    def test_tier_values(self):
        assert {t.value for t in AnalystTier} == {"NEW", "RISING", "TOP_TIER"}

    def test_order_fields_are_column_names(self):
        assert AnalystOrderField("score") == AnalystOrderField.SCORE
        assert AnalystOrderField("lifetime_calls") == AnalystOrderField.LIFETIME_CALLS

    @pytest.mark.parametrize(
        "enum_cls",
        [RecommendationAction, RecommendationStatus, EvaluationOutcome, AnalystTier],
    )
    def test_no_duplicate_values(self, enum_cls):
        values = [m.value for m in enum_cls]
        assert len(values) == len(set(values))
