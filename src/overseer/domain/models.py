"""Decision records and inputs exchanged with the engine.

All records are immutable Pydantic models. A new estimate, decision or
classification always produces a new record; nothing here is updated in place.
Records carry a ``schema_version`` so consumers on the bus can evolve with them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from overseer.config.settings import settings
from overseer.errors import ClassificationLocked

SCHEMA_VERSION = 1

DIMENSIONS: Tuple[str, str, str] = ("cost", "timeline", "risk")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Verdict(str, Enum):
    """Adjudication outcome, ordered by increasing scrutiny."""

    PROCEED = "proceed"
    INVESTIGATE = "investigate"
    REJECT = "reject"

    @property
    def scrutiny(self) -> int:
        return _VERDICT_SCRUTINY[self]

    def at_least(self, other: "Verdict") -> "Verdict":
        """Return whichever of the two verdicts demands more scrutiny."""
        return self if self.scrutiny >= other.scrutiny else other


_VERDICT_SCRUTINY = {Verdict.PROCEED: 0, Verdict.INVESTIGATE: 1, Verdict.REJECT: 2}


class Classification(str, Enum):
    LOCAL_HANDLING = "local_handling"
    ESCALATE = "escalate"


class TierMode(str, Enum):
    EMERGENCY_ONLY = "emergency-only"
    PERIODIC = "periodic"
    CONTINUOUS = "continuous"


class SupervisionTier(str, Enum):
    """Budget-linked supervision intensity."""

    BUDGET = "budget"
    STANDARD = "standard"
    PREMIUM = "premium"

    @property
    def mode(self) -> TierMode:
        return _TIER_MODES[self]

    @property
    def activation_threshold(self) -> float:
        return {
            SupervisionTier.BUDGET: settings.budget_tier_threshold,
            SupervisionTier.STANDARD: settings.standard_tier_threshold,
            SupervisionTier.PREMIUM: settings.premium_tier_threshold,
        }[self]


_TIER_MODES = {
    SupervisionTier.BUDGET: TierMode.EMERGENCY_ONLY,
    SupervisionTier.STANDARD: TierMode.PERIODIC,
    SupervisionTier.PREMIUM: TierMode.CONTINUOUS,
}


class EventKind(str, Enum):
    """Project events understood by the supervision accumulator."""

    MICRO_STEP_FAILURE = "microStepFailure"
    TIMELINE_OVERRUN = "timelineOverrun"
    COST_OVERRUN = "costOverrun"
    QUALITY_GATE_FAILURE = "qualityGateFailure"
    DEPENDENCY_DEADLOCK = "dependencyDeadlock"
    STALLED_PROGRESS = "stalledProgress"
    PERIODIC_CHECK = "periodicCheck"

    @classmethod
    def parse(cls, value: str) -> Optional["EventKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


class ActivationReason(str, Enum):
    THRESHOLD = "threshold"
    PERIODIC = "periodic"
    CONTINUOUS = "continuous"


class WeightPreset(str, Enum):
    SPEED_FOCUSED = "speed-focused"
    COST_CONSCIOUS = "cost-conscious"
    RISK_AVERSE = "risk-averse"
    CUSTOM = "custom"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)


# --- Estimates -----------------------------------------------------------------


class CostEstimate(_Record):
    tokens: int = Field(default=0, ge=0)
    usd: float = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)


class TimelineEstimate(_Record):
    hours: float = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)


class RiskEstimate(_Record):
    score: float = Field(ge=0.0, le=1.0)
    factors: Tuple[str, ...] = ()
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class MacroStepEstimate(_Record):
    """Snapshot of the three estimate dimensions for one macro step.

    Dimensions are optional because estimator collaborators report them
    independently; a snapshot missing any of them is adjudicated as incomplete.
    """

    step_id: str = Field(min_length=1)
    cost: Optional[CostEstimate] = None
    timeline: Optional[TimelineEstimate] = None
    risk: Optional[RiskEstimate] = None
    estimated_at: datetime = Field(default_factory=utc_now)

    def missing_dimensions(self) -> Tuple[str, ...]:
        return tuple(name for name in DIMENSIONS if getattr(self, name) is None)

    def confidences(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        if self.cost is not None:
            out["cost"] = self.cost.confidence
        if self.timeline is not None:
            out["timeline"] = self.timeline.confidence
        if self.risk is not None and self.risk.confidence is not None:
            out["risk"] = self.risk.confidence
        return out


class AdjudicationContext(_Record):
    """Project-tracking inputs used to normalize cost and timeline badness."""

    budget_remaining_usd: Optional[float] = None
    schedule_slack_hours: Optional[float] = None


# --- Weights -------------------------------------------------------------------


class WeightProfile(_Record):
    cost_weight: float = Field(default=1.0, ge=0.0)
    timeline_weight: float = Field(default=1.0, ge=0.0)
    risk_weight: float = Field(default=1.0, ge=0.0)
    preset: WeightPreset = WeightPreset.CUSTOM

    def as_dict(self) -> Dict[str, float]:
        return {
            "cost": self.cost_weight,
            "timeline": self.timeline_weight,
            "risk": self.risk_weight,
        }

    def normalized(self) -> Dict[str, float]:
        """Weights divided by their sum; equal thirds when they sum to zero."""
        raw = self.as_dict()
        total = raw["cost"] + raw["timeline"] + raw["risk"]
        if total <= 0:
            return {name: 1.0 / 3.0 for name in DIMENSIONS}
        return {name: raw[name] / total for name in DIMENSIONS}


# --- Decisions -----------------------------------------------------------------


class FactorBreakdown(_Record):
    cost: Optional[float] = None
    timeline: Optional[float] = None
    risk: Optional[float] = None

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {"cost": self.cost, "timeline": self.timeline, "risk": self.risk}


class AdjudicationDecision(_Record):
    decision_id: UUID = Field(default_factory=uuid4)
    project_id: Optional[str] = None
    step_id: str
    verdict: Verdict
    weighted_score: float
    contributions: FactorBreakdown
    badness: FactorBreakdown
    weights: FactorBreakdown
    rationale: str
    flags: Tuple[str, ...] = ()
    decided_at: datetime = Field(default_factory=utc_now)
    schema_version: int = SCHEMA_VERSION

    def dominant_factor(self) -> Optional[str]:
        scored = {k: v for k, v in self.contributions.as_dict().items() if v is not None}
        if not scored:
            return None
        # DIMENSIONS order breaks ties deterministically.
        return max(DIMENSIONS, key=lambda name: (scored.get(name, -1.0), -DIMENSIONS.index(name)))


class SupervisionActivation(_Record):
    activation_id: UUID = Field(default_factory=uuid4)
    project_id: str
    tier: SupervisionTier
    reason: ActivationReason
    triggered_at: datetime = Field(default_factory=utc_now)
    accumulated_weight_at_trigger: float
    triggering_event_kind: str
    event_id: Optional[str] = None
    schema_version: int = SCHEMA_VERSION


class ProjectEvent(_Record):
    """One entry of the project event stream."""

    event_kind: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    magnitude: Optional[float] = None
    timestamp: datetime = Field(default_factory=utc_now)
    event_id: Optional[str] = None


# --- Scope changes -------------------------------------------------------------


class ScopeChangeRecord(_Record):
    """A reported scope change; ``classification`` is set exactly once."""

    change_id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    project_id: str = Field(min_length=1)
    reported_step_id: str = Field(min_length=1)
    estimated_effort_delta_pct: float = Field(ge=0.0)
    touches_other_macro_steps: bool = False
    new_dependencies_introduced: bool = False
    classification: Optional[Classification] = None
    classified_at: Optional[datetime] = None
    reasons: Tuple[str, ...] = ()
    ledger_total_before_pct: Optional[float] = None
    reported_at: datetime = Field(default_factory=utc_now)
    schema_version: int = SCHEMA_VERSION

    @property
    def is_classified(self) -> bool:
        return self.classification is not None

    def classify(
        self,
        classification: Classification,
        reasons: Tuple[str, ...] = (),
        ledger_total_before_pct: Optional[float] = None,
        classified_at: Optional[datetime] = None,
    ) -> "ScopeChangeRecord":
        """Return a classified copy of this record.

        Raises:
            ClassificationLocked: if the record was already classified.
        """
        if self.classification is not None:
            raise ClassificationLocked(
                f"Scope change {self.change_id} is already classified as "
                f"{self.classification.value}"
            )
        return self.model_copy(
            update={
                "classification": classification,
                "reasons": tuple(reasons),
                "ledger_total_before_pct": ledger_total_before_pct,
                "classified_at": classified_at or utc_now(),
            }
        )


class Notification(_Record):
    notification_id: UUID = Field(default_factory=uuid4)
    project_id: str
    kind: str
    subject: str
    body: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


class ReplanRequest(_Record):
    project_id: str
    step_id: str
    change_id: str
    reasons: Tuple[str, ...]
    requested_at: datetime = Field(default_factory=utc_now)
    schema_version: int = SCHEMA_VERSION


__all__ = [
    "SCHEMA_VERSION",
    "DIMENSIONS",
    "utc_now",
    "Verdict",
    "Classification",
    "TierMode",
    "SupervisionTier",
    "EventKind",
    "ActivationReason",
    "WeightPreset",
    "ProjectStatus",
    "CostEstimate",
    "TimelineEstimate",
    "RiskEstimate",
    "MacroStepEstimate",
    "AdjudicationContext",
    "WeightProfile",
    "FactorBreakdown",
    "AdjudicationDecision",
    "SupervisionActivation",
    "ProjectEvent",
    "ScopeChangeRecord",
    "Notification",
    "ReplanRequest",
]
