"""Tests for the structured rule evaluator."""

import pytest
from src.core.cdr.models import (
    Component,
    ComponentType,
    NumericRange,
    ProcedureStep,
    Scoring,
    ScoringMethod,
    StructuredRule,
    TrackingStatus,
)
from src.core.cdr.scoring import (
    contribution,
    evaluate,
    find_range,
    suggested_treatments,
    walk_steps,
)


def _heart_inputs(history=0, ecg=0, age=0, risk_factors=0, troponin=0):
    return {
        "history": history,
        "ecg": ecg,
        "age": age,
        "risk_factors": risk_factors,
        "troponin": troponin,
    }


@pytest.fixture
def heart(definitions_by_id):
    return definitions_by_id["heart"]


@pytest.fixture
def level_rule():
    """number_range rule with ranges narrower than its input domain"""
    return StructuredRule(
        id="level",
        name="Level",
        full_name="Level",
        category="TEST",
        application="",
        components=[
            Component(id="level", label="Level", type=ComponentType.NUMBER_RANGE, min=-5, max=10),
        ],
        scoring=Scoring(
            method=ScoringMethod.SUM,
            ranges=[
                NumericRange(0, 2, "Low", "low"),
                NumericRange(3, 5, "High", "high"),
            ],
        ),
    )


# ------------------------------------------------------------------
# Sum method
# ------------------------------------------------------------------

class TestSumScoring:
    @pytest.mark.parametrize("inputs,total,risk", [
        (_heart_inputs(), 0, "Low"),
        (_heart_inputs(history=2, ecg=1), 3, "Low"),
        (_heart_inputs(history=2, ecg=1, age=1), 4, "Moderate"),
        (_heart_inputs(history=2, ecg=2, age=2), 6, "Moderate"),
        (_heart_inputs(history=2, ecg=2, age=2, troponin=1), 7, "High"),
        (_heart_inputs(2, 2, 2, 2, 2), 10, "High"),
    ])
    def test_heart_boundaries(self, heart, inputs, total, risk):
        result = evaluate(heart, inputs)
        assert result.total == total
        assert result.risk == risk
        assert result.clamped is False

    def test_select_by_label(self, heart):
        result = evaluate(heart, {"history": "highly suspicious", "troponin": ">3x normal limit"})
        assert result.total == 4
        assert result.risk == "Moderate"

    def test_boolean_weights(self, definitions_by_id):
        wells_pe = definitions_by_id["wells_pe"]
        result = evaluate(wells_pe, {"hr_gt_100": True, "hemoptysis": "yes"})
        assert result.total == 2.5
        assert result.risk == "Moderate"

    def test_negative_weight(self, definitions_by_id):
        result = evaluate(definitions_by_id["wells_dvt"], {"alternative_diagnosis": True})
        assert result.total == -2
        assert result.risk == "Low"

    def test_false_booleans_contribute_nothing(self, definitions_by_id):
        qsofa = definitions_by_id["qsofa"]
        result = evaluate(qsofa, {c.id: False for c in qsofa.components})
        assert result.total == 0
        assert result.risk == "Low"
        assert result.status == TrackingStatus.COMPLETED

    def test_fractional_total_in_gap_is_clamped(self, definitions_by_id):
        result = evaluate(definitions_by_id["wells_pe"], {"hr_gt_100": True})
        assert result.total == 1.5
        assert result.clamped is True
        assert result.risk == "Low"  # equidistant, lower range wins


# ------------------------------------------------------------------
# Threshold method
# ------------------------------------------------------------------

class TestThresholdScoring:
    def test_all_absent_is_low(self, definitions_by_id):
        perc = definitions_by_id["perc"]
        result = evaluate(perc, {c.id: False for c in perc.components})
        assert result.risk == "Low"

    def test_any_present_is_not_low(self, definitions_by_id):
        result = evaluate(definitions_by_id["perc"], {"hr_gte_100": True})
        assert result.total == 1
        assert result.risk == "Not Low"

    def test_weights_ignored(self):
        rule = StructuredRule(
            id="t", name="T", full_name="T", category="TEST", application="",
            components=[
                Component(id="a", label="A", type=ComponentType.BOOLEAN, value=3),
                Component(id="b", label="B", type=ComponentType.BOOLEAN, value=5),
            ],
            scoring=Scoring(
                method=ScoringMethod.THRESHOLD,
                ranges=[NumericRange(0, 1, "Low", ""), NumericRange(2, 2, "High", "")],
            ),
        )
        assert evaluate(rule, {"a": True, "b": True}).total == 2
        assert evaluate(rule, {"a": True}).risk == "Low"


# ------------------------------------------------------------------
# Clamping
# ------------------------------------------------------------------

class TestClamping:
    def test_above_highest(self, level_rule):
        result = evaluate(level_rule, {"level": 8})
        assert result.risk == "High"
        assert result.clamped is True

    def test_below_lowest(self, level_rule):
        result = evaluate(level_rule, {"level": -1})
        assert result.risk == "Low"
        assert result.clamped is True

    def test_gap_nearest_boundary(self, level_rule):
        ranges = level_rule.scoring.numeric_ranges
        band, clamped = find_range(ranges, 2.6)
        assert band.risk == "High"
        assert clamped is True
        band, _ = find_range(ranges, 2.4)
        assert band.risk == "Low"

    def test_inclusive_bounds(self, level_rule):
        band, clamped = find_range(level_rule.scoring.numeric_ranges, 3)
        assert band.risk == "High"
        assert clamped is False

    def test_unordered_ranges_are_sorted(self):
        ranges = [NumericRange(3, 5, "High", ""), NumericRange(0, 2, "Low", "")]
        band, _ = find_range(ranges, 1)
        assert band.risk == "Low"

    def test_no_ranges(self):
        assert find_range([], 1) == (None, True)

    def test_nan_total_resolves_without_raising(self, level_rule):
        band, clamped = find_range(level_rule.scoring.numeric_ranges, float("nan"))
        assert band.risk == "Low"
        assert clamped is True

    def test_clamp_logged(self, level_rule, caplog):
        with caplog.at_level("INFO", logger="src.core.cdr.scoring"):
            evaluate(level_rule, {"level": 9})
        assert "clamped" in caplog.text


# ------------------------------------------------------------------
# Algorithm method
# ------------------------------------------------------------------

class TestAlgorithmScoring:
    @pytest.fixture
    def pecarn(self, definitions_by_id):
        return definitions_by_id["pecarn"]

    @pytest.fixture
    def cspine(self, definitions_by_id):
        return definitions_by_id["canadian_cspine"]

    def test_first_matching_step_wins(self, pecarn):
        result = evaluate(pecarn, {"gcs_lte_14": True, "scalp_hematoma": True})
        assert result.risk == "High"
        assert result.step_index == 0

    def test_intermediate_step(self, pecarn):
        result = evaluate(pecarn, {"scalp_hematoma": True, "age_group": "<2 years"})
        assert result.risk == "Intermediate"
        assert result.step_index == 1

    def test_fallback_step(self, pecarn):
        result = evaluate(pecarn, {"gcs_lte_14": False})
        assert result.risk == "Very Low"
        assert result.step_index == 2
        assert result.clamped is False

    def test_high_risk_factor(self, cspine):
        result = evaluate(cspine, {"dangerous_mechanism": True, "sitting_in_ed": True})
        assert (result.risk, result.step_index) == ("Not Low", 0)

    def test_no_low_risk_factor(self, cspine):
        result = evaluate(cspine, {"able_to_rotate_neck": True})
        assert (result.risk, result.step_index) == ("Not Low", 1)

    def test_cannot_rotate(self, cspine):
        result = evaluate(cspine, {"sitting_in_ed": True, "able_to_rotate_neck": False})
        assert (result.risk, result.step_index) == ("Not Low", 2)

    def test_cleared(self, cspine):
        result = evaluate(cspine, {"sitting_in_ed": True, "able_to_rotate_neck": True})
        assert (result.risk, result.step_index) == ("Low", 3)

    @pytest.mark.parametrize("value,risk,index", [
        (0.6, "Normal", 0),
        (0.7, "Normal", 0),
        (0.9, "Mild", 1),
        ("1.2", "Moderate", 2),
        (2.0, "Severe", 3),
    ])
    def test_bounded_steps(self, definitions_by_id, value, risk, index):
        result = evaluate(definitions_by_id["shock_index"], {"shock_index": value})
        assert (result.risk, result.step_index) == (risk, index)
        assert result.clamped is False

    def test_above_bounded_steps_clamps_to_highest(self, definitions_by_id):
        result = evaluate(definitions_by_id["shock_index"], {"shock_index": 5})
        assert result.risk == "Severe"
        assert result.step_index == 3
        assert result.clamped is True

    def test_below_bounded_steps_clamps_to_lowest(self, definitions_by_id):
        result = evaluate(definitions_by_id["shock_index"], {"shock_index": -0.2})
        assert result.risk == "Normal"
        assert result.step_index == 0
        assert result.clamped is True

    def test_unmatched_clause_steps_fall_to_last(self):
        steps = [
            ProcedureStep("Any", "", when_any=["a"]),
            ProcedureStep("None", "", when_none=["b"]),
        ]
        assert walk_steps(steps, {"b"}, 1) == (1, True)

    def test_non_finite_total_never_satisfies_bounds(self, definitions_by_id):
        steps = definitions_by_id["shock_index"].scoring.steps
        assert walk_steps(steps, set(), float("nan")) == (3, True)

    def test_when_all(self):
        steps = [
            ProcedureStep("Both", "", when_all=["a", "b"]),
            ProcedureStep("Neither", ""),
        ]
        assert walk_steps(steps, {"a", "b"}, 2) == (0, False)
        assert walk_steps(steps, {"a"}, 1) == (1, False)

    def test_empty_steps(self):
        assert walk_steps([], set(), 0) == (None, True)


# ------------------------------------------------------------------
# Inputs, tracking, treatments
# ------------------------------------------------------------------

class TestInputsAndTracking:
    def test_invalid_select_label_is_unanswered(self, heart, caplog):
        with caplog.at_level("WARNING", logger="src.core.cdr.scoring"):
            result = evaluate(heart, {"history": "not an option", "ecg": 1})
        assert "history" in result.missing
        assert result.answered == ["ecg"]
        assert result.total == 1
        assert "not an option" in caplog.text

    def test_bool_is_not_a_select_value(self, heart):
        result = evaluate(heart, {"history": True})
        assert result.answered == []

    def test_non_numeric_number_range(self, level_rule):
        result = evaluate(level_rule, {"level": "high"})
        assert result.missing == ["level"]
        assert result.status == TrackingStatus.PENDING

    @pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity", float("nan"), float("inf")])
    def test_non_finite_number_is_unanswered(self, level_rule, raw, caplog):
        with caplog.at_level("WARNING", logger="src.core.cdr.scoring"):
            result = evaluate(level_rule, {"level": raw})
        assert result.missing == ["level"]
        assert result.total == 0
        assert result.risk == "Low"
        assert "Ignoring invalid input" in caplog.text

    @pytest.mark.parametrize("raw", ["nan", float("inf")])
    def test_non_finite_shock_index_is_unanswered(self, definitions_by_id, raw):
        result = evaluate(definitions_by_id["shock_index"], {"shock_index": raw})
        assert result.missing == ["shock_index"]
        assert result.status == TrackingStatus.PENDING

    def test_non_finite_boolean_and_select(self, heart, definitions_by_id):
        assert evaluate(heart, {"history": float("nan")}).missing[0] == "history"
        component = definitions_by_id["wells_pe"].component("hr_gt_100")
        assert contribution(component, float("nan")) is None

    def test_unknown_inputs_ignored(self, heart):
        result = evaluate(heart, {"unknown": 2, "history": 1})
        assert result.total == 1

    def test_none_input_is_unanswered_without_warning(self, heart, caplog):
        with caplog.at_level("WARNING", logger="src.core.cdr.scoring"):
            result = evaluate(heart, {"history": None})
        assert result.answered == []
        assert caplog.text == ""

    def test_status_progression(self, heart):
        assert evaluate(heart, {}).status == TrackingStatus.PENDING
        assert evaluate(heart, {"history": 1}).status == TrackingStatus.PARTIAL
        assert evaluate(heart, _heart_inputs()).status == TrackingStatus.COMPLETED

    def test_contribution_string_booleans(self, definitions_by_id):
        component = definitions_by_id["wells_pe"].component("hr_gt_100")
        assert contribution(component, "present") == 1.5
        assert contribution(component, "no") == 0
        assert contribution(component, "maybe") is None

    def test_treatments_attached(self, heart):
        result = evaluate(heart, _heart_inputs(2, 2, 2, 2, 2))
        assert result.treatments[0] == "aspirin_325"

    def test_treatments_missing_risk(self, definitions_by_id):
        assert suggested_treatments(definitions_by_id["pecarn"], "Very Low") == []

    def test_treatments_are_copies(self, heart):
        suggested_treatments(heart, "High").append("mutated")
        assert "mutated" not in heart.suggested_treatments["High"]

    def test_result_to_dict(self, heart):
        data = evaluate(heart, {"history": 2}).to_dict()
        assert data["rule_id"] == "heart"
        assert data["method"] == "sum"
        assert data["status"] == "partial"
        assert data["missing"] == ["ecg", "age", "risk_factors", "troponin"]
        assert data["awaiting_results"] == ["ecg", "troponin"]


# ------------------------------------------------------------------
# Auto-populated values and component sources
# ------------------------------------------------------------------

class TestAutoPopulation:
    def test_auto_populated_values_count_as_answered(self, heart):
        result = evaluate(heart, {}, auto_populated={"history": 2, "age": 1})
        assert result.answered == ["history", "age"]
        assert result.auto_populated == ["history", "age"]
        assert result.total == 3
        assert result.status == TrackingStatus.PARTIAL

    def test_explicit_inputs_win(self, heart):
        result = evaluate(heart, {"history": 0}, auto_populated={"history": 2, "age": 1})
        assert result.total == 1
        assert result.auto_populated == ["age"]

    def test_invalid_auto_value_stays_missing(self, heart):
        result = evaluate(heart, {}, auto_populated={"age": "unknown"})
        assert result.auto_populated == []
        assert "age" in result.missing

    def test_section2_components_await_results(self, heart):
        result = evaluate(heart, {"history": 1, "age": 1, "risk_factors": 0})
        assert result.awaiting_results == ["ecg", "troponin"]
        assert result.missing_sources == {"ecg": "section2", "troponin": "section2"}
        assert result.fill_hints == {"ecg": "test_result", "troponin": "test_result"}

    def test_answered_components_have_no_hints(self, heart):
        result = evaluate(heart, _heart_inputs())
        assert result.missing_sources == {}
        assert result.fill_hints == {}
        assert result.awaiting_results == []
