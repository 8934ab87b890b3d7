"""Scope-creep classification.

A reported scope change is handled locally only when it is small, contained to
its own macro step, adds no dependencies, and keeps the project's cumulative
creep under tolerance. Anything else escalates: the affected step is suspended
and the planner is asked to re-plan. A classification is written once and never
revisited.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from overseer.config import settings
from overseer.domain.models import (
    Classification,
    Notification,
    ReplanRequest,
    ScopeChangeRecord,
)
from overseer.errors import ClassificationLocked
from overseer.events.bus import EventBus, Topic
from overseer.observability.logging import get_logger
from overseer.observability.metrics import SCOPE_CLASSIFICATIONS
from overseer.storage.database import get_session
from overseer.storage.repositories import (
    DeadLetterRepository,
    ScopeChangeRepository,
    scope_change_from_row,
)
from overseer.workflows.durable import DurableWriter, SessionScope

logger = get_logger(__name__)

__all__ = [
    "CreepLedger",
    "ClassificationResult",
    "ScopeCreepClassifier",
    "classify",
    "evaluate_change",
]


@dataclass(frozen=True)
class CreepLedger:
    """Cumulative effort delta of every scope change already recorded for a project.

    Changes whose write is parked in the dead-letter table count as recorded.
    """

    project_id: str
    total_pct: float = 0.0
    entries: int = 0

    @classmethod
    def load(cls, session: Session, project_id: str) -> "CreepLedger":
        repo = ScopeChangeRepository(session)
        rows = repo.list_for_project(project_id)
        stored = {row.change_id for row in rows}
        parked = [
            dead_letter.payload
            for dead_letter in DeadLetterRepository(session).get_unresolved(source="scope_change")
            if dead_letter.project_id == project_id
            and dead_letter.payload.get("change_id") not in stored
        ]
        parked_pct = sum(float(p.get("estimated_effort_delta_pct") or 0.0) for p in parked)
        return cls(
            project_id=project_id,
            total_pct=repo.total_effort_delta(project_id) + parked_pct,
            entries=len(rows) + len(parked),
        )


def _parked_change(session: Session, change_id: str) -> Optional[ScopeChangeRecord]:
    parked = DeadLetterRepository(session).find_unresolved("scope_change", "change_id", change_id)
    if parked is None:
        return None
    return ScopeChangeRecord.model_validate(parked.payload)


@dataclass(frozen=True)
class ClassificationResult:
    classification: Classification
    reasons: Tuple[str, ...]


def evaluate_change(
    change: ScopeChangeRecord,
    ledger: CreepLedger,
    tolerance_pct: float,
    local_max_delta_pct: float | None = None,
) -> ClassificationResult:
    """Classify ``change`` and explain why."""
    local_max = local_max_delta_pct
    if local_max is None:
        local_max = settings.scope_local_max_delta_pct
    delta = change.estimated_effort_delta_pct
    cumulative = ledger.total_pct + delta

    reasons = []
    if delta >= local_max:
        reasons.append(f"effort delta {delta:.1f}% is at or above the {local_max:.1f}% local limit")
    if change.touches_other_macro_steps:
        reasons.append("change touches other macro steps")
    if change.new_dependencies_introduced:
        reasons.append("change introduces new dependencies")
    if cumulative >= tolerance_pct:
        reasons.append(
            f"cumulative creep {cumulative:.1f}% reaches the {tolerance_pct:.1f}% tolerance"
        )

    if reasons:
        return ClassificationResult(Classification.ESCALATE, tuple(reasons))
    return ClassificationResult(
        Classification.LOCAL_HANDLING,
        (
            f"effort delta {delta:.1f}% contained to step {change.reported_step_id}; "
            f"cumulative creep {cumulative:.1f}% of {tolerance_pct:.1f}% tolerance",
        ),
    )


def classify(
    change: ScopeChangeRecord,
    ledger: CreepLedger,
    tolerance_pct: float,
    local_max_delta_pct: float | None = None,
) -> Classification:
    return evaluate_change(change, ledger, tolerance_pct, local_max_delta_pct).classification


def _notification_for(record: ScopeChangeRecord) -> Notification:
    if record.classification is Classification.ESCALATE:
        subject = f"Scope change on {record.reported_step_id} escalated for re-planning"
    else:
        subject = f"Scope change on {record.reported_step_id} handled locally"
    return Notification(
        project_id=record.project_id,
        kind="scope_change_classified",
        subject=subject,
        body=" ".join(record.reasons),
        payload={
            "change_id": record.change_id,
            "classification": record.classification.value if record.classification else None,
            "reported_step_id": record.reported_step_id,
            "estimated_effort_delta_pct": record.estimated_effort_delta_pct,
            "ledger_total_before_pct": record.ledger_total_before_pct,
        },
    )


class ScopeCreepClassifier:
    """Classifies reported scope changes and routes escalations."""

    def __init__(
        self,
        tolerance_for: Callable[[str], float],
        writer: DurableWriter,
        bus: EventBus | None = None,
        session_scope: SessionScope | None = None,
        local_max_delta_pct: float | None = None,
    ):
        self._tolerance_for = tolerance_for
        self._writer = writer
        self._bus = bus
        self._session_scope = session_scope or get_session
        self._local_max_delta_pct = local_max_delta_pct
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(project_id, threading.Lock())

    def forget(self, project_id: str) -> None:
        """Drop the per-project lock once the project is closed."""
        with self._locks_guard:
            self._locks.pop(project_id, None)

    def submit(self, change: ScopeChangeRecord) -> ScopeChangeRecord:
        """Classify and record ``change``.

        Resubmitting a ``change_id`` that was already classified returns the
        stored record unchanged, including a record whose write is still
        parked in the dead-letter table.

        Raises:
            ClassificationLocked: if ``change`` arrives already classified and
                was not recorded here.
        """
        with self._lock_for(change.project_id):
            with self._session_scope() as session:
                existing = ScopeChangeRepository(session).get_by_change_id(change.change_id)
                if existing is not None:
                    logger.info(
                        "duplicate_scope_change",
                        project_id=change.project_id,
                        change_id=change.change_id,
                    )
                    return scope_change_from_row(existing)
                parked = _parked_change(session, change.change_id)
                if parked is not None:
                    logger.warning(
                        "duplicate_scope_change_parked",
                        project_id=change.project_id,
                        change_id=change.change_id,
                        classification=parked.classification.value,
                    )
                    return parked
                ledger = CreepLedger.load(session, change.project_id)

            if change.is_classified:
                raise ClassificationLocked(
                    f"Scope change {change.change_id} arrived already classified"
                )

            tolerance = self._tolerance_for(change.project_id)
            result = evaluate_change(change, ledger, tolerance, self._local_max_delta_pct)
            record = change.classify(
                result.classification,
                reasons=result.reasons,
                ledger_total_before_pct=ledger.total_pct,
            )
            self._writer.write("scope_change", record)
            notification = _notification_for(record)
            self._writer.write("notification", notification)

        SCOPE_CLASSIFICATIONS.labels(classification=result.classification.value).inc()
        logger.info(
            "scope_change_classified",
            project_id=record.project_id,
            change_id=record.change_id,
            step_id=record.reported_step_id,
            classification=result.classification.value,
            delta_pct=record.estimated_effort_delta_pct,
            ledger_total_before_pct=ledger.total_pct,
            tolerance_pct=tolerance,
        )
        self._publish(record, notification)
        return record

    def _publish(self, record: ScopeChangeRecord, notification: Notification) -> None:
        if self._bus is None:
            return
        self._bus.publish(Topic.SCOPE_CLASSIFIED, record)
        self._bus.publish(Topic.USER_NOTIFICATION, notification)
        if record.classification is Classification.ESCALATE:
            self._bus.publish(
                Topic.SCOPE_SUSPEND,
                {
                    "project_id": record.project_id,
                    "step_id": record.reported_step_id,
                    "change_id": record.change_id,
                    "reasons": list(record.reasons),
                },
            )
            self._bus.publish(
                Topic.PLANNER_REPLAN_REQUESTED,
                ReplanRequest(
                    project_id=record.project_id,
                    step_id=record.reported_step_id,
                    change_id=record.change_id,
                    reasons=record.reasons,
                ),
            )
