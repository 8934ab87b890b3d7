"""SQLAlchemy database models for Overseer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import declarative_base, relationship

from overseer.domain.models import ProjectStatus


def _utc_now() -> datetime:
    """Return a tz-naive UTC timestamp for TIMESTAMP WITHOUT TIME ZONE columns.

    Domain records carry tz-aware datetimes; columns keep them naive and are
    treated as UTC by convention.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def aware_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class GUID(TypeDecorator[UUID]):
    """Platform-independent GUID type.

    Uses PostgreSQL's UUID type when available, otherwise stores as String(36).
    This enables unit tests with SQLite while using native UUIDs in production PostgreSQL.
    """

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        else:
            return dialect.type_descriptor(String(36))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        elif dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(value)
        else:
            return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value: Any, dialect: Any) -> UUID | None:
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


Base = declarative_base()

__all__ = [
    "Base",
    "GUID",
    "Project",
    "BudgetRecord",
    "AdjudicationRecord",
    "ActivationRecord",
    "ScopeChange",
    "NotificationRecord",
    "DeadLetter",
    "naive_utc",
    "aware_utc",
]


class Project(Base):
    """A project whose macro steps are adjudicated and supervised."""

    __tablename__ = "projects"

    id = Column(String(128), primary_key=True)
    name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=ProjectStatus.PLANNING.value)
    created_at = Column(DateTime, default=_utc_now)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)

    budget = relationship(
        "BudgetRecord", back_populates="project", uselist=False, cascade="all, delete-orphan"
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Project id={self.id} status={self.status}>"


class BudgetRecord(Base):
    """Per-project decision weights, supervision tier and budget figures.

    ``tier`` is optional: when unset the tier is derived from ``total_budget_usd``.
    """

    __tablename__ = "budget_records"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(String(128), ForeignKey("projects.id"), nullable=False, unique=True)
    preset = Column(String(32), nullable=False, default="custom")
    cost_weight = Column(Float, nullable=False, default=1.0)
    timeline_weight = Column(Float, nullable=False, default=1.0)
    risk_weight = Column(Float, nullable=False, default=1.0)
    tier = Column(String(32), nullable=True)
    total_budget_usd = Column(Float, nullable=True)
    budget_remaining_usd = Column(Float, nullable=True)
    schedule_slack_hours = Column(Float, nullable=True)
    creep_tolerance_pct = Column(Float, nullable=True)
    max_cost_usd = Column(Float, nullable=True)
    alert_threshold_usd = Column(Float, nullable=True)
    emergency_stop_usd = Column(Float, nullable=True)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)

    project = relationship("Project", back_populates="budget")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "preset": self.preset,
            "weights": {
                "cost": self.cost_weight,
                "timeline": self.timeline_weight,
                "risk": self.risk_weight,
            },
            "tier": self.tier,
            "total_budget_usd": self.total_budget_usd,
            "budget_remaining_usd": self.budget_remaining_usd,
            "schedule_slack_hours": self.schedule_slack_hours,
            "creep_tolerance_pct": self.creep_tolerance_pct,
            "constraints": {
                "max_cost_usd": self.max_cost_usd,
                "alert_threshold_usd": self.alert_threshold_usd,
                "emergency_stop_usd": self.emergency_stop_usd,
            },
            "updated_at": _iso(self.updated_at),
        }


class AdjudicationRecord(Base):
    """Persisted adjudication decision. Append-only history."""

    __tablename__ = "adjudication_decisions"
    __table_args__ = (
        Index("ix_adjudication_decisions_project_step", "project_id", "step_id"),
        Index("ix_adjudication_decisions_decided_at", "decided_at"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(String(128), ForeignKey("projects.id"), nullable=False)
    step_id = Column(String(128), nullable=False)
    verdict = Column(String(32), nullable=False)
    weighted_score = Column(Float, nullable=False)
    contributions = Column(JSON, default=dict)
    badness = Column(JSON, default=dict)
    weights = Column(JSON, default=dict)
    rationale = Column(Text, nullable=False)
    flags = Column(JSON, default=list)
    schema_version = Column(Integer, nullable=False, default=1)
    decided_at = Column(DateTime, default=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision_id": str(self.id),
            "project_id": self.project_id,
            "step_id": self.step_id,
            "verdict": self.verdict,
            "weighted_score": self.weighted_score,
            "contributions": self.contributions,
            "badness": self.badness,
            "weights": self.weights,
            "rationale": self.rationale,
            "flags": self.flags or [],
            "schema_version": self.schema_version,
            "decided_at": _iso(self.decided_at),
        }


class ActivationRecord(Base):
    """Persisted supervisor activation."""

    __tablename__ = "supervision_activations"
    __table_args__ = (Index("ix_supervision_activations_project_id", "project_id"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(String(128), ForeignKey("projects.id"), nullable=False)
    tier = Column(String(32), nullable=False)
    reason = Column(String(32), nullable=False)
    accumulated_weight_at_trigger = Column(Float, nullable=False)
    triggering_event_kind = Column(String(64), nullable=False)
    event_id = Column(String(128), nullable=True)
    schema_version = Column(Integer, nullable=False, default=1)
    triggered_at = Column(DateTime, default=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activation_id": str(self.id),
            "project_id": self.project_id,
            "tier": self.tier,
            "reason": self.reason,
            "accumulated_weight_at_trigger": self.accumulated_weight_at_trigger,
            "triggering_event_kind": self.triggering_event_kind,
            "event_id": self.event_id,
            "schema_version": self.schema_version,
            "triggered_at": _iso(self.triggered_at),
        }


class ScopeChange(Base):
    """Classified scope change. The classification column is written once at insert."""

    __tablename__ = "scope_changes"
    __table_args__ = (Index("ix_scope_changes_project_id", "project_id"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    change_id = Column(String(128), nullable=False, unique=True)
    project_id = Column(String(128), ForeignKey("projects.id"), nullable=False)
    reported_step_id = Column(String(128), nullable=False)
    estimated_effort_delta_pct = Column(Float, nullable=False)
    touches_other_macro_steps = Column(Boolean, nullable=False, default=False)
    new_dependencies_introduced = Column(Boolean, nullable=False, default=False)
    classification = Column(String(32), nullable=False)
    reasons = Column(JSON, default=list)
    ledger_total_before_pct = Column(Float, nullable=True)
    schema_version = Column(Integer, nullable=False, default=1)
    reported_at = Column(DateTime, default=_utc_now)
    classified_at = Column(DateTime, default=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change_id": self.change_id,
            "project_id": self.project_id,
            "reported_step_id": self.reported_step_id,
            "estimated_effort_delta_pct": self.estimated_effort_delta_pct,
            "touches_other_macro_steps": self.touches_other_macro_steps,
            "new_dependencies_introduced": self.new_dependencies_introduced,
            "classification": self.classification,
            "reasons": self.reasons or [],
            "ledger_total_before_pct": self.ledger_total_before_pct,
            "schema_version": self.schema_version,
            "reported_at": _iso(self.reported_at),
            "classified_at": _iso(self.classified_at),
        }


class NotificationRecord(Base):
    """User notification emitted for every scope change."""

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_project_id", "project_id"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(String(128), ForeignKey("projects.id"), nullable=False)
    kind = Column(String(64), nullable=False)
    subject = Column(String(256), nullable=False)
    body = Column(Text, nullable=False)
    payload = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "notification_id": str(self.id),
            "project_id": self.project_id,
            "kind": self.kind,
            "subject": self.subject,
            "body": self.body,
            "payload": self.payload,
            "created_at": _iso(self.created_at),
        }


class DeadLetter(Base):
    """Dead letter queue entry for writes that failed after all retry attempts.

    Holds the serialized record so an operator can inspect and replay it.
    No foreign key on ``project_id`` so parking never fails on a missing project.
    """

    __tablename__ = "dead_letters"
    __table_args__ = (
        Index("idx_dead_letters_source", "source"),
        Index("idx_dead_letters_resolved", "resolved_at"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    source = Column(String(50), nullable=False)  # "adjudication", "activation", ...
    project_id = Column(String(128), nullable=True)
    payload = Column(JSON, nullable=False)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, default=0)
    created_at = Column(DateTime, default=_utc_now)
    last_attempt_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "source": self.source,
            "project_id": self.project_id,
            "payload": self.payload,
            "error": self.error,
            "attempts": self.attempts,
            "created_at": _iso(self.created_at),
            "last_attempt_at": _iso(self.last_attempt_at),
            "resolved_at": _iso(self.resolved_at),
        }

    def __repr__(self) -> str:
        return f"<DeadLetter id={self.id} source={self.source} resolved={self.resolved_at is not None}>"
