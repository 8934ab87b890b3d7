"""Weight profile and supervision tier resolution.

Resolution is a pure read of the project's stored budget record. A project
without a record is still supervised: it gets equal weights and the Budget tier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from overseer.config import settings
from overseer.domain.models import (
    AdjudicationContext,
    SupervisionTier,
    WeightPreset,
    WeightProfile,
)
from overseer.errors import NoBudgetRecord, ProjectNotFound
from overseer.observability.logging import get_logger
from overseer.storage.database import get_session
from overseer.storage.models import BudgetRecord
from overseer.storage.repositories import BudgetRepository, ProjectRepository
from overseer.workflows.durable import SessionScope

logger = get_logger(__name__)

__all__ = [
    "PRESET_WEIGHTS",
    "ResolvedProfile",
    "WeightProfileResolver",
    "preset_profile",
    "tier_for_budget",
]

PRESET_WEIGHTS: Dict[WeightPreset, Dict[str, float]] = {
    WeightPreset.SPEED_FOCUSED: {"cost": 0.2, "timeline": 0.6, "risk": 0.2},
    WeightPreset.COST_CONSCIOUS: {"cost": 0.6, "timeline": 0.2, "risk": 0.2},
    WeightPreset.RISK_AVERSE: {"cost": 0.2, "timeline": 0.2, "risk": 0.6},
}


def preset_profile(preset: WeightPreset) -> WeightProfile:
    """Weights for a named preset. ``custom`` has no fixed weights and yields equal ones."""
    weights = PRESET_WEIGHTS.get(preset)
    if weights is None:
        return WeightProfile(preset=preset)
    return WeightProfile(
        cost_weight=weights["cost"],
        timeline_weight=weights["timeline"],
        risk_weight=weights["risk"],
        preset=preset,
    )


def tier_for_budget(total_budget_usd: float | None) -> SupervisionTier:
    if total_budget_usd is None:
        return SupervisionTier.BUDGET
    if total_budget_usd >= settings.premium_budget_usd:
        return SupervisionTier.PREMIUM
    if total_budget_usd >= settings.standard_budget_usd:
        return SupervisionTier.STANDARD
    return SupervisionTier.BUDGET


@dataclass(frozen=True)
class ResolvedProfile:
    project_id: str
    weights: WeightProfile
    tier: SupervisionTier
    context: AdjudicationContext
    creep_tolerance_pct: float
    has_budget_record: bool = True


def _weights_from_record(record: BudgetRecord) -> WeightProfile:
    try:
        preset = WeightPreset(record.preset or WeightPreset.CUSTOM.value)
    except ValueError:
        logger.warning("unknown_weight_preset", project_id=record.project_id, preset=record.preset)
        preset = WeightPreset.CUSTOM
    if preset is not WeightPreset.CUSTOM:
        return preset_profile(preset)

    weights = {
        "cost_weight": record.cost_weight,
        "timeline_weight": record.timeline_weight,
        "risk_weight": record.risk_weight,
    }
    if any(value is None or value < 0 for value in weights.values()):
        logger.warning("invalid_weights_defaulted", project_id=record.project_id, weights=weights)
        return WeightProfile()
    if sum(weights.values()) <= 0:
        # normalized() falls back to equal thirds
        logger.warning("zero_weight_sum", project_id=record.project_id)
    return WeightProfile(preset=WeightPreset.CUSTOM, **weights)


def _tier_from_record(record: BudgetRecord) -> SupervisionTier:
    if record.tier:
        try:
            return SupervisionTier(record.tier)
        except ValueError:
            logger.warning("unknown_tier_ignored", project_id=record.project_id, tier=record.tier)
    return tier_for_budget(record.total_budget_usd)


class WeightProfileResolver:
    """Resolve a project's decision weights, supervision tier and budget context."""

    def __init__(self, session_scope: SessionScope | None = None):
        self._session_scope = session_scope or get_session

    def resolve(self, project_id: str) -> ResolvedProfile:
        """Resolve the profile for ``project_id``.

        Raises:
            ProjectNotFound: if the project does not exist.
        """
        try:
            return self._resolve_stored(project_id)
        except NoBudgetRecord as exc:
            logger.warning("no_budget_record", project_id=project_id, detail=str(exc))
            return ResolvedProfile(
                project_id=project_id,
                weights=WeightProfile(),
                tier=SupervisionTier.BUDGET,
                context=AdjudicationContext(),
                creep_tolerance_pct=settings.default_creep_tolerance_pct,
                has_budget_record=False,
            )

    def _resolve_stored(self, project_id: str) -> ResolvedProfile:
        with self._session_scope() as session:
            if ProjectRepository(session).get(project_id) is None:
                raise ProjectNotFound(project_id)
            record = BudgetRepository(session).get_for_project(project_id)
            if record is None:
                raise NoBudgetRecord(project_id)

            tolerance = record.creep_tolerance_pct
            if tolerance is None or tolerance <= 0:
                tolerance = settings.default_creep_tolerance_pct
            return ResolvedProfile(
                project_id=project_id,
                weights=_weights_from_record(record),
                tier=_tier_from_record(record),
                context=AdjudicationContext(
                    budget_remaining_usd=record.budget_remaining_usd,
                    schedule_slack_hours=record.schedule_slack_hours,
                ),
                creep_tolerance_pct=tolerance,
            )
