"""Adjudication of macro-step estimates into Proceed / Investigate / Reject.

Each dimension is reduced to a badness in [0, 1]:

- cost     = clamp(usd / budget_remaining_usd)
- timeline = clamp(hours / schedule_slack_hours)
- risk     = risk score

The weighted score is the weight-normalized sum of badness values. Thresholds
map it to a verdict; boundaries belong to the stricter verdict:

- proceed     when score <  investigate_threshold (0.40)
- investigate when investigate_threshold <= score < reject_threshold (0.70)
- reject      when score >= reject_threshold

Any confidence below ``min_confidence`` caps Proceed at Investigate. An
estimate missing a dimension (or the budget figure needed to normalize it) is
not decided: the verdict is Investigate and the partial score over the
available dimensions is reported only in the rationale.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from overseer.config import settings
from overseer.domain.models import (
    DIMENSIONS,
    AdjudicationContext,
    AdjudicationDecision,
    FactorBreakdown,
    MacroStepEstimate,
    Verdict,
    WeightProfile,
)
from overseer.observability.logging import get_logger

logger = get_logger(__name__)

FLAG_INCOMPLETE = "incomplete_estimate"
FLAG_LOW_CONFIDENCE = "low_confidence"


@dataclass(frozen=True)
class VerdictThresholds:
    investigate: float = 0.4
    reject: float = 0.7
    min_confidence: float = 0.5

    @classmethod
    def from_settings(cls) -> "VerdictThresholds":
        return cls(
            investigate=settings.investigate_threshold,
            reject=settings.reject_threshold,
            min_confidence=settings.min_confidence,
        )


def _clamp(value: float) -> float:
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value


def _ratio_badness(amount: float, available: float) -> float:
    if available <= 0:
        return 1.0 if amount > 0 else 0.0
    return _clamp(amount / available)


def score_to_verdict(score: float, thresholds: VerdictThresholds | None = None) -> Verdict:
    """Map a weighted score into a verdict. Scores outside [0, 1] are clamped."""
    thresholds = thresholds or VerdictThresholds.from_settings()
    score = _clamp(score)
    if score >= thresholds.reject:
        return Verdict.REJECT
    if score >= thresholds.investigate:
        return Verdict.INVESTIGATE
    return Verdict.PROCEED


def compute_badness(
    estimate: MacroStepEstimate, context: AdjudicationContext
) -> Tuple[Dict[str, float], Tuple[str, ...]]:
    """Badness per available dimension and the names of what was missing."""
    badness: Dict[str, float] = {}
    missing: List[str] = []

    if estimate.cost is None:
        missing.append("cost")
    elif context.budget_remaining_usd is None:
        missing.append("budget_remaining_usd")
    else:
        badness["cost"] = _ratio_badness(estimate.cost.usd, context.budget_remaining_usd)

    if estimate.timeline is None:
        missing.append("timeline")
    elif context.schedule_slack_hours is None:
        missing.append("schedule_slack_hours")
    else:
        badness["timeline"] = _ratio_badness(estimate.timeline.hours, context.schedule_slack_hours)

    if estimate.risk is None:
        missing.append("risk")
    else:
        badness["risk"] = _clamp(estimate.risk.score)

    return badness, tuple(missing)


def _weights_over(weights: WeightProfile, available: Tuple[str, ...]) -> Dict[str, float]:
    """Weights renormalized over the dimensions that could be scored."""
    raw = weights.as_dict()
    total = sum(raw[name] for name in available)
    if total <= 0:
        return {name: 1.0 / len(available) for name in available}
    return {name: raw[name] / total for name in available}


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.3f}"


def build_rationale(
    verdict: Verdict,
    score: float,
    contributions: FactorBreakdown,
    badness: FactorBreakdown,
    weights: FactorBreakdown,
    thresholds: VerdictThresholds,
    missing: Tuple[str, ...] = (),
    low_confidence: Tuple[str, ...] = (),
) -> str:
    parts = [
        f"Verdict {verdict.value}: weighted score {score:.3f} "
        f"(investigate >= {thresholds.investigate:.2f}, reject >= {thresholds.reject:.2f})."
    ]
    scored = {k: v for k, v in contributions.as_dict().items() if v is not None}
    if scored:
        dominant = max(DIMENSIONS, key=lambda name: (scored.get(name, -1.0), -DIMENSIONS.index(name)))
        parts.append(f"Dominant factor: {dominant} (contribution {scored[dominant]:.3f}).")
    factors = [
        f"{name} contribution {_fmt(contributions.as_dict()[name])} "
        f"(badness {_fmt(badness.as_dict()[name])}, weight {_fmt(weights.as_dict()[name])})"
        for name in DIMENSIONS
    ]
    parts.append("; ".join(factors) + ".")
    if missing:
        parts.append(
            f"Incomplete estimate, missing: {', '.join(missing)}; "
            f"partial score {score:.3f} over the available factors, not decided."
        )
    if low_confidence:
        parts.append(
            f"Confidence below {thresholds.min_confidence:.2f} for: {', '.join(low_confidence)}; "
            "automatic approval withheld."
        )
    return " ".join(parts)


def adjudicate(
    estimate: MacroStepEstimate,
    weights: WeightProfile,
    context: AdjudicationContext | None = None,
    thresholds: VerdictThresholds | None = None,
    project_id: str | None = None,
) -> AdjudicationDecision:
    """Score ``estimate`` against ``weights`` and return a new decision.

    Pure apart from ``decision_id`` and ``decided_at``. Never raises for an
    incomplete estimate: the decision is Investigate and carries the
    ``incomplete_estimate`` flag.
    """
    context = context or AdjudicationContext()
    thresholds = thresholds or VerdictThresholds.from_settings()

    badness, missing = compute_badness(estimate, context)
    flags: List[str] = []
    if missing:
        logger.debug("incomplete_estimate", step_id=estimate.step_id, missing=list(missing))
        flags.append(FLAG_INCOMPLETE)
        flags.extend(f"missing:{name}" for name in missing)

    available = tuple(name for name in DIMENSIONS if name in badness)
    normalized = _weights_over(weights, available) if available else {}
    contributions = {name: normalized[name] * badness[name] for name in available}
    score = sum(contributions.values())

    verdict = Verdict.INVESTIGATE if missing else score_to_verdict(score, thresholds)

    low_confidence = tuple(
        name
        for name, confidence in estimate.confidences().items()
        if confidence < thresholds.min_confidence
    )
    if low_confidence:
        flags.append(FLAG_LOW_CONFIDENCE)
        verdict = verdict.at_least(Verdict.INVESTIGATE)

    contribution_breakdown = FactorBreakdown(**contributions)
    badness_breakdown = FactorBreakdown(**badness)
    weight_breakdown = FactorBreakdown(**(normalized or weights.normalized()))

    return AdjudicationDecision(
        project_id=project_id,
        step_id=estimate.step_id,
        verdict=verdict,
        weighted_score=score,
        contributions=contribution_breakdown,
        badness=badness_breakdown,
        weights=weight_breakdown,
        rationale=build_rationale(
            verdict,
            score,
            contribution_breakdown,
            badness_breakdown,
            weight_breakdown,
            thresholds,
            missing=missing,
            low_confidence=low_confidence,
        ),
        flags=tuple(flags),
    )


__all__ = [
    "FLAG_INCOMPLETE",
    "FLAG_LOW_CONFIDENCE",
    "VerdictThresholds",
    "adjudicate",
    "build_rationale",
    "compute_badness",
    "score_to_verdict",
]
