"""Unit tests for macro-step adjudication."""

from __future__ import annotations

import pytest

from overseer.domain.models import (
    AdjudicationContext,
    CostEstimate,
    MacroStepEstimate,
    RiskEstimate,
    TimelineEstimate,
    Verdict,
    WeightProfile,
)
from overseer.engine.adjudication import (
    FLAG_INCOMPLETE,
    FLAG_LOW_CONFIDENCE,
    VerdictThresholds,
    adjudicate,
    score_to_verdict,
)

CONTEXT = AdjudicationContext(budget_remaining_usd=100.0, schedule_slack_hours=100.0)
THRESHOLDS = VerdictThresholds(investigate=0.4, reject=0.7, min_confidence=0.5)
EQUAL = WeightProfile(cost_weight=1, timeline_weight=1, risk_weight=1)


def _estimate(cost=0.2, timeline=0.3, risk=0.1, confidence=0.9, step_id="step-1"):
    """Estimate whose badness values equal the given numbers under CONTEXT."""
    return MacroStepEstimate(
        step_id=step_id,
        cost=CostEstimate(tokens=1000, usd=cost * 100, confidence=confidence),
        timeline=TimelineEstimate(hours=timeline * 100, confidence=confidence),
        risk=RiskEstimate(score=risk, factors=("api",), confidence=confidence),
    )


def test_low_badness_with_equal_weights_proceeds() -> None:
    decision = adjudicate(_estimate(), EQUAL, CONTEXT, THRESHOLDS)

    assert decision.weighted_score == pytest.approx(0.2)
    assert decision.verdict is Verdict.PROCEED
    assert decision.flags == ()


def test_high_risk_moves_to_investigate() -> None:
    decision = adjudicate(_estimate(risk=0.9), EQUAL, CONTEXT, THRESHOLDS)

    assert decision.weighted_score == pytest.approx(1.4 / 3)
    assert decision.verdict is Verdict.INVESTIGATE
    assert decision.dominant_factor() == "risk"


def test_low_confidence_caps_proceed_at_investigate() -> None:
    decision = adjudicate(_estimate(confidence=0.3), EQUAL, CONTEXT, THRESHOLDS)

    assert decision.weighted_score < THRESHOLDS.investigate
    assert decision.verdict is Verdict.INVESTIGATE
    assert FLAG_LOW_CONFIDENCE in decision.flags
    assert "automatic approval withheld" in decision.rationale


def test_low_confidence_does_not_soften_reject() -> None:
    decision = adjudicate(_estimate(0.9, 0.9, 0.9, confidence=0.1), EQUAL, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.REJECT


def test_single_low_confidence_dimension_is_enough() -> None:
    estimate = MacroStepEstimate(
        step_id="s",
        cost=CostEstimate(usd=10, confidence=0.9),
        timeline=TimelineEstimate(hours=10, confidence=0.49),
        risk=RiskEstimate(score=0.1),
    )

    decision = adjudicate(estimate, EQUAL, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.INVESTIGATE
    assert "for: timeline;" in decision.rationale


@pytest.mark.parametrize(
    ("score", "expected"),
    [
        (0.0, Verdict.PROCEED),
        (0.3999, Verdict.PROCEED),
        (0.4, Verdict.INVESTIGATE),
        (0.6999, Verdict.INVESTIGATE),
        (0.7, Verdict.REJECT),
        (1.0, Verdict.REJECT),
        (-0.5, Verdict.PROCEED),
        (3.0, Verdict.REJECT),
    ],
)
def test_score_to_verdict_boundaries_resolve_to_stricter_bucket(score, expected) -> None:
    assert score_to_verdict(score, THRESHOLDS) is expected


def test_exact_boundary_scores_through_adjudicate() -> None:
    cost_only = WeightProfile(cost_weight=1, timeline_weight=0, risk_weight=0)

    at_investigate = adjudicate(_estimate(cost=0.4), cost_only, CONTEXT, THRESHOLDS)
    at_reject = adjudicate(_estimate(cost=0.7), cost_only, CONTEXT, THRESHOLDS)

    assert at_investigate.verdict is Verdict.INVESTIGATE
    assert at_reject.verdict is Verdict.REJECT


def test_contributions_are_normalized_weight_times_badness() -> None:
    weights = WeightProfile(cost_weight=2, timeline_weight=1, risk_weight=1)

    decision = adjudicate(_estimate(cost=0.5, timeline=0.2, risk=0.4), weights, CONTEXT, THRESHOLDS)

    assert decision.contributions.cost == pytest.approx(0.25)
    assert decision.contributions.timeline == pytest.approx(0.05)
    assert decision.contributions.risk == pytest.approx(0.1)
    assert decision.weighted_score == pytest.approx(0.4)
    assert decision.weights.cost == pytest.approx(0.5)


def test_zero_weights_fall_back_to_equal_thirds() -> None:
    zero = WeightProfile(cost_weight=0, timeline_weight=0, risk_weight=0)

    decision = adjudicate(_estimate(), zero, CONTEXT, THRESHOLDS)

    assert decision.weighted_score == pytest.approx(0.2)
    assert decision.weights.as_dict() == pytest.approx(
        {"cost": 1 / 3, "timeline": 1 / 3, "risk": 1 / 3}
    )


def test_badness_is_clamped_to_one() -> None:
    estimate = _estimate(cost=5.0, timeline=0.0, risk=0.0)

    decision = adjudicate(estimate, EQUAL, CONTEXT, THRESHOLDS)

    assert decision.badness.cost == 1.0


def test_exhausted_budget_makes_any_cost_maximally_bad() -> None:
    context = AdjudicationContext(budget_remaining_usd=0.0, schedule_slack_hours=100.0)

    decision = adjudicate(_estimate(cost=0.01), EQUAL, context, THRESHOLDS)

    assert decision.badness.cost == 1.0


def test_missing_dimension_is_investigate_with_flag() -> None:
    estimate = MacroStepEstimate(
        step_id="partial",
        cost=CostEstimate(usd=1, confidence=0.9),
        timeline=TimelineEstimate(hours=1, confidence=0.9),
    )

    decision = adjudicate(estimate, EQUAL, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.INVESTIGATE
    assert FLAG_INCOMPLETE in decision.flags
    assert "missing:risk" in decision.flags
    assert decision.contributions.risk is None
    assert "missing: risk" in decision.rationale


def test_missing_normalizer_is_treated_as_incomplete() -> None:
    context = AdjudicationContext(budget_remaining_usd=None, schedule_slack_hours=100.0)

    decision = adjudicate(_estimate(), EQUAL, context, THRESHOLDS)

    assert decision.verdict is Verdict.INVESTIGATE
    assert "missing:budget_remaining_usd" in decision.flags
    assert decision.badness.cost is None


def test_incomplete_estimate_is_investigate_even_when_available_factors_are_bad() -> None:
    estimate = MacroStepEstimate(step_id="risky", risk=RiskEstimate(score=0.95))

    decision = adjudicate(estimate, EQUAL, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.INVESTIGATE
    assert FLAG_INCOMPLETE in decision.flags
    assert "partial score 0.950" in decision.rationale


def test_zero_weighted_factor_cannot_decide_an_incomplete_estimate() -> None:
    weights = WeightProfile(cost_weight=1, timeline_weight=1, risk_weight=0)
    estimate = MacroStepEstimate(step_id="risk-only", risk=RiskEstimate(score=0.9))

    decision = adjudicate(estimate, weights, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.INVESTIGATE
    assert "missing:cost" in decision.flags
    assert "missing:timeline" in decision.flags
    assert "not decided" in decision.rationale


def test_empty_estimate_is_investigate() -> None:
    decision = adjudicate(MacroStepEstimate(step_id="empty"), EQUAL, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.INVESTIGATE
    assert decision.weighted_score == 0.0
    assert decision.dominant_factor() is None


def test_reject_always_carries_rationale() -> None:
    decision = adjudicate(_estimate(0.9, 0.8, 0.9), EQUAL, CONTEXT, THRESHOLDS)

    assert decision.verdict is Verdict.REJECT
    assert decision.rationale.startswith("Verdict reject")
    assert "Dominant factor" in decision.rationale


def test_thresholds_default_to_settings(monkeypatch) -> None:
    from overseer.config import reset_settings_cache

    monkeypatch.setenv("INVESTIGATE_THRESHOLD", "0.1")
    monkeypatch.setenv("REJECT_THRESHOLD", "0.15")
    reset_settings_cache()

    decision = adjudicate(_estimate(), EQUAL, CONTEXT)

    assert decision.verdict is Verdict.REJECT


def test_decision_is_json_serializable_and_versioned() -> None:
    decision = adjudicate(_estimate(), EQUAL, CONTEXT, THRESHOLDS, project_id="p")

    payload = decision.model_dump(mode="json")

    assert payload["verdict"] == "proceed"
    assert payload["project_id"] == "p"
    assert payload["schema_version"] == 1
