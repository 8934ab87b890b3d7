"""Domain records for adjudication, supervision and scope creep."""

from overseer.domain.models import (
    ActivationReason,
    AdjudicationContext,
    AdjudicationDecision,
    Classification,
    CostEstimate,
    EventKind,
    FactorBreakdown,
    MacroStepEstimate,
    Notification,
    ProjectEvent,
    ProjectStatus,
    ReplanRequest,
    RiskEstimate,
    ScopeChangeRecord,
    SupervisionActivation,
    SupervisionTier,
    TierMode,
    TimelineEstimate,
    Verdict,
    WeightPreset,
    WeightProfile,
)

__all__ = [
    "ActivationReason",
    "AdjudicationContext",
    "AdjudicationDecision",
    "Classification",
    "CostEstimate",
    "EventKind",
    "FactorBreakdown",
    "MacroStepEstimate",
    "Notification",
    "ProjectEvent",
    "ProjectStatus",
    "ReplanRequest",
    "RiskEstimate",
    "ScopeChangeRecord",
    "SupervisionActivation",
    "SupervisionTier",
    "TierMode",
    "TimelineEstimate",
    "Verdict",
    "WeightPreset",
    "WeightProfile",
]
