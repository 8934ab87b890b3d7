"""Data access repositories."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from overseer.domain.models import (
    AdjudicationDecision,
    Classification,
    Notification,
    ProjectStatus,
    ScopeChangeRecord,
    SupervisionActivation,
)
from overseer.observability.logging import get_logger
from overseer.storage.models import (
    ActivationRecord,
    AdjudicationRecord,
    BudgetRecord,
    DeadLetter,
    NotificationRecord,
    Project,
    ScopeChange,
    aware_utc,
    naive_utc,
)

logger = get_logger(__name__)

__all__ = [
    "ProjectRepository",
    "BudgetRepository",
    "DecisionRepository",
    "ActivationRepository",
    "ScopeChangeRepository",
    "NotificationRepository",
    "DeadLetterRepository",
    "scope_change_from_row",
]

_BUDGET_FIELDS = frozenset(
    {
        "preset",
        "cost_weight",
        "timeline_weight",
        "risk_weight",
        "tier",
        "total_budget_usd",
        "budget_remaining_usd",
        "schedule_slack_hours",
        "creep_tolerance_pct",
        "max_cost_usd",
        "alert_threshold_usd",
        "emergency_stop_usd",
    }
)


class ProjectRepository:
    """Repository for Project CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        project_id: str,
        name: str,
        description: str | None = None,
        status: ProjectStatus = ProjectStatus.PLANNING,
    ) -> Project:
        project = Project(id=project_id, name=name, description=description, status=status.value)
        self.session.add(project)
        self.session.flush()
        logger.info("project_created", project_id=project_id, status=status.value)
        return project

    def get(self, project_id: str) -> Optional[Project]:
        return self.session.get(Project, project_id)

    def list_by_status(self, status: ProjectStatus) -> List[Project]:
        stmt = select(Project).where(Project.status == status.value).order_by(Project.id)
        return list(self.session.execute(stmt).scalars().all())

    def update_status(self, project_id: str, status: ProjectStatus) -> Optional[Project]:
        project = self.get(project_id)
        if project is None:
            return None
        project.status = status.value
        self.session.flush()
        logger.info("project_status_updated", project_id=project_id, status=status.value)
        return project


class BudgetRepository:
    """Repository for per-project weight and budget records."""

    def __init__(self, session: Session):
        self.session = session

    def get_for_project(self, project_id: str) -> Optional[BudgetRecord]:
        stmt = select(BudgetRecord).where(BudgetRecord.project_id == project_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, project_id: str, **fields: Any) -> BudgetRecord:
        """Create the project's budget record or update the given fields."""
        unknown = set(fields) - _BUDGET_FIELDS
        if unknown:
            raise ValueError(f"Unknown budget fields: {sorted(unknown)}")

        record = self.get_for_project(project_id)
        if record is None:
            record = BudgetRecord(project_id=project_id)
            self.session.add(record)
        for key, value in fields.items():
            if value is not None and hasattr(value, "value"):
                value = value.value
            setattr(record, key, value)
        self.session.flush()
        logger.info("budget_record_saved", project_id=project_id, fields=sorted(fields))
        return record


class DecisionRepository:
    """Append-only store of adjudication decisions."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, decision: AdjudicationDecision) -> AdjudicationRecord:
        if decision.project_id is None:
            raise ValueError("Persisted decisions must reference a project")
        record = AdjudicationRecord(
            id=decision.decision_id,
            project_id=decision.project_id,
            step_id=decision.step_id,
            verdict=decision.verdict.value,
            weighted_score=decision.weighted_score,
            contributions=decision.contributions.as_dict(),
            badness=decision.badness.as_dict(),
            weights=decision.weights.as_dict(),
            rationale=decision.rationale,
            flags=list(decision.flags),
            schema_version=decision.schema_version,
            decided_at=naive_utc(decision.decided_at),
        )
        self.session.add(record)
        self.session.flush()
        return record

    def get(self, decision_id: UUID) -> Optional[AdjudicationRecord]:
        return self.session.get(AdjudicationRecord, decision_id)

    def list_for_project(
        self, project_id: str, step_id: str | None = None, limit: int = 100
    ) -> List[AdjudicationRecord]:
        """Decisions for a project, most recent first."""
        stmt = select(AdjudicationRecord).where(AdjudicationRecord.project_id == project_id)
        if step_id is not None:
            stmt = stmt.where(AdjudicationRecord.step_id == step_id)
        stmt = stmt.order_by(AdjudicationRecord.decided_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars().all())


class ActivationRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, activation: SupervisionActivation) -> ActivationRecord:
        record = ActivationRecord(
            id=activation.activation_id,
            project_id=activation.project_id,
            tier=activation.tier.value,
            reason=activation.reason.value,
            accumulated_weight_at_trigger=activation.accumulated_weight_at_trigger,
            triggering_event_kind=activation.triggering_event_kind,
            event_id=activation.event_id,
            schema_version=activation.schema_version,
            triggered_at=naive_utc(activation.triggered_at),
        )
        self.session.add(record)
        self.session.flush()
        return record

    def get(self, activation_id: UUID) -> Optional[ActivationRecord]:
        return self.session.get(ActivationRecord, activation_id)

    def list_for_project(self, project_id: str, limit: int = 100) -> List[ActivationRecord]:
        stmt = (
            select(ActivationRecord)
            .where(ActivationRecord.project_id == project_id)
            .order_by(ActivationRecord.triggered_at.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())


def scope_change_from_row(row: ScopeChange) -> ScopeChangeRecord:
    return ScopeChangeRecord(
        change_id=row.change_id,
        project_id=row.project_id,
        reported_step_id=row.reported_step_id,
        estimated_effort_delta_pct=row.estimated_effort_delta_pct,
        touches_other_macro_steps=row.touches_other_macro_steps,
        new_dependencies_introduced=row.new_dependencies_introduced,
        classification=Classification(row.classification),
        classified_at=aware_utc(row.classified_at),
        reasons=tuple(row.reasons or ()),
        ledger_total_before_pct=row.ledger_total_before_pct,
        reported_at=aware_utc(row.reported_at),
        schema_version=row.schema_version,
    )


class ScopeChangeRepository:
    """Store of classified scope changes.

    A row's classification is written at insert. The only update is
    :meth:`escalate`, which raises a local row to Escalate; nothing lowers one.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(self, record: ScopeChangeRecord) -> ScopeChange:
        if record.classification is None:
            raise ValueError(f"Scope change {record.change_id} must be classified before saving")
        row = ScopeChange(
            change_id=record.change_id,
            project_id=record.project_id,
            reported_step_id=record.reported_step_id,
            estimated_effort_delta_pct=record.estimated_effort_delta_pct,
            touches_other_macro_steps=record.touches_other_macro_steps,
            new_dependencies_introduced=record.new_dependencies_introduced,
            classification=record.classification.value,
            reasons=list(record.reasons),
            ledger_total_before_pct=record.ledger_total_before_pct,
            schema_version=record.schema_version,
            reported_at=naive_utc(record.reported_at),
            classified_at=naive_utc(record.classified_at),
        )
        self.session.add(row)
        self.session.flush()
        return row

    def get_by_change_id(self, change_id: str) -> Optional[ScopeChange]:
        stmt = select(ScopeChange).where(ScopeChange.change_id == change_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def escalate(self, row: ScopeChange, record: ScopeChangeRecord) -> ScopeChange:
        if record.classification is not Classification.ESCALATE:
            raise ValueError(f"Scope change {record.change_id} can only be raised to escalate")
        row.classification = Classification.ESCALATE.value
        row.reasons = list(record.reasons)
        row.classified_at = naive_utc(record.classified_at)
        self.session.flush()
        logger.warning("scope_change_escalated_on_replay", change_id=row.change_id)
        return row

    def list_for_project(self, project_id: str) -> List[ScopeChange]:
        stmt = (
            select(ScopeChange)
            .where(ScopeChange.project_id == project_id)
            .order_by(ScopeChange.classified_at)
        )
        return list(self.session.execute(stmt).scalars().all())

    def total_effort_delta(self, project_id: str) -> float:
        stmt = select(func.coalesce(func.sum(ScopeChange.estimated_effort_delta_pct), 0.0)).where(
            ScopeChange.project_id == project_id
        )
        return float(self.session.execute(stmt).scalar_one() or 0.0)


class NotificationRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, notification: Notification) -> NotificationRecord:
        record = NotificationRecord(
            id=notification.notification_id,
            project_id=notification.project_id,
            kind=notification.kind,
            subject=notification.subject,
            body=notification.body,
            payload=notification.payload,
            created_at=naive_utc(notification.created_at),
        )
        self.session.add(record)
        self.session.flush()
        return record

    def list_for_project(self, project_id: str) -> List[NotificationRecord]:
        stmt = (
            select(NotificationRecord)
            .where(NotificationRecord.project_id == project_id)
            .order_by(NotificationRecord.created_at)
        )
        return list(self.session.execute(stmt).scalars().all())


class DeadLetterRepository:
    """Repository for DeadLetter CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        source: str,
        payload: Dict[str, Any],
        project_id: str | None = None,
        error: str | None = None,
        attempts: int = 0,
    ) -> DeadLetter:
        """Create a dead letter entry.

        Args:
            source: Kind of record that failed to persist ("adjudication", "activation", ...)
            payload: JSON-serializable record
            project_id: Project the record belongs to
            error: Error message from last attempt
            attempts: Number of write attempts made
        """
        dead_letter = DeadLetter(
            source=source,
            project_id=project_id,
            payload=payload,
            error=error,
            attempts=attempts,
            last_attempt_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        self.session.add(dead_letter)
        self.session.flush()
        logger.info(
            "dead_letter_created",
            id=str(dead_letter.id),
            source=source,
            project_id=project_id,
            attempts=attempts,
        )
        return dead_letter

    def get_unresolved(self, source: str | None = None) -> List[DeadLetter]:
        """Get all unresolved dead letters, optionally filtered by source."""
        stmt = select(DeadLetter).where(DeadLetter.resolved_at.is_(None))
        if source:
            stmt = stmt.where(DeadLetter.source == source)
        stmt = stmt.order_by(DeadLetter.created_at.desc())
        return list(self.session.execute(stmt).scalars().all())

    def find_unresolved(self, source: str, key: str, value: Any) -> Optional[DeadLetter]:
        """Newest unresolved dead letter of ``source`` whose payload has ``key == value``."""
        for dead_letter in self.get_unresolved(source=source):
            if (dead_letter.payload or {}).get(key) == value:
                return dead_letter
        return None

    def get(self, dead_letter_id: UUID) -> Optional[DeadLetter]:
        return self.session.get(DeadLetter, dead_letter_id)

    def mark_resolved(self, dead_letter_id: UUID) -> None:
        dead_letter = self.get(dead_letter_id)
        if dead_letter:
            dead_letter.resolved_at = datetime.now(timezone.utc).replace(tzinfo=None)
            self.session.flush()
            logger.info("dead_letter_resolved", id=str(dead_letter_id))

    def increment_attempts(self, dead_letter_id: UUID, error: str | None = None) -> None:
        dead_letter = self.get(dead_letter_id)
        if dead_letter:
            dead_letter.attempts = (dead_letter.attempts or 0) + 1
            dead_letter.last_attempt_at = datetime.now(timezone.utc).replace(tzinfo=None)
            if error is not None:
                dead_letter.error = error
            self.session.flush()
