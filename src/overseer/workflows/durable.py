"""Durable writes for decision, activation and notification records.

Every record the engine emits is written here first. A write is retried on
transient database errors; once retries are exhausted the serialized record is
parked in the dead-letter table and a degraded-mode alert is raised. Only when
the dead-letter write fails as well does the caller see an error.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Callable, Dict, Tuple, Type

from pydantic import BaseModel
from sqlalchemy.orm import Session

from overseer.domain.models import (
    AdjudicationDecision,
    Classification,
    Notification,
    ScopeChangeRecord,
    SupervisionActivation,
)
from overseer.errors import PersistenceExhausted
from overseer.events.bus import EventBus, Topic
from overseer.observability.logging import get_logger
from overseer.observability.metrics import DEAD_LETTERS
from overseer.storage.database import get_session
from overseer.storage.repositories import (
    ActivationRepository,
    DeadLetterRepository,
    DecisionRepository,
    NotificationRepository,
    ScopeChangeRepository,
)
from overseer.workflows.retry import MaxRetriesExceeded, RetryConfig, config_from_settings, with_retry

logger = get_logger(__name__)

__all__ = ["DurableWriter", "RECORD_SOURCES", "SessionScope", "write_record"]

SessionScope = Callable[[], AbstractContextManager[Session]]

Writer = Callable[[Session, Any], Any]


def _write_scope_change(session: Session, record: ScopeChangeRecord) -> Any:
    repo = ScopeChangeRepository(session)
    existing = repo.get_by_change_id(record.change_id)
    if existing is None:
        return repo.create(record)
    # Escalation is one-way: a replayed Escalate wins over a later local row.
    if (
        record.classification is Classification.ESCALATE
        and existing.classification != Classification.ESCALATE.value
    ):
        return repo.escalate(existing, record)
    return existing


def _write_decision(session: Session, record: AdjudicationDecision) -> Any:
    repo = DecisionRepository(session)
    existing = repo.get(record.decision_id)
    if existing is not None:
        return existing
    return repo.create(record)


def _write_activation(session: Session, record: SupervisionActivation) -> Any:
    repo = ActivationRepository(session)
    existing = repo.get(record.activation_id)
    if existing is not None:
        return existing
    return repo.create(record)


def _write_notification(session: Session, record: Notification) -> Any:
    return NotificationRepository(session).create(record)


# source name -> (record model, writer). Writers are idempotent on the record id
# so a replayed dead letter never produces a second row.
RECORD_SOURCES: Dict[str, Tuple[Type[BaseModel], Writer]] = {
    "adjudication": (AdjudicationDecision, _write_decision),
    "activation": (SupervisionActivation, _write_activation),
    "scope_change": (ScopeChangeRecord, _write_scope_change),
    "notification": (Notification, _write_notification),
}


def write_record(session: Session, source: str, record: BaseModel) -> Any:
    """Write ``record`` with the writer registered for ``source``."""
    try:
        _, writer = RECORD_SOURCES[source]
    except KeyError:
        raise ValueError(f"Unknown record source: {source}") from None
    return writer(session, record)


class DurableWriter:
    """Persist engine records with retry, dead-letter fallback and alerting."""

    def __init__(
        self,
        session_scope: SessionScope | None = None,
        bus: EventBus | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self._session_scope = session_scope or get_session
        self._bus = bus
        self._retry_config = retry_config

    def write(self, source: str, record: BaseModel) -> bool:
        """Persist ``record``.

        Returns:
            True when the record reached its own table, False when it was parked
            in the dead-letter table instead. Both outcomes are durable.

        Raises:
            PersistenceExhausted: if neither the write nor the dead-letter write succeeded.
        """
        if source not in RECORD_SOURCES:
            raise ValueError(f"Unknown record source: {source}")

        def _attempt() -> None:
            with self._session_scope() as session:
                write_record(session, source, record)

        try:
            with_retry(
                _attempt,
                config=self._retry_config or config_from_settings(),
                operation_name=f"persist_{source}",
            )
            return True
        except MaxRetriesExceeded as exc:
            self._park(source, record, exc)
            return False

    def _park(self, source: str, record: BaseModel, exc: MaxRetriesExceeded) -> None:
        project_id = getattr(record, "project_id", None)
        payload = record.model_dump(mode="json")
        error = str(exc.last_exception or exc)
        try:
            with self._session_scope() as session:
                dead_letter = DeadLetterRepository(session).create(
                    source=source,
                    payload=payload,
                    project_id=project_id,
                    error=error,
                    attempts=exc.attempts,
                )
                dead_letter_id = str(dead_letter.id)
        except Exception as dlq_exc:
            logger.critical(
                "dead_letter_write_failed",
                source=source,
                project_id=project_id,
                error=str(dlq_exc),
                exc_info=True,
            )
            raise PersistenceExhausted(
                f"Could not persist or park {source} record for project {project_id}"
            ) from dlq_exc

        DEAD_LETTERS.labels(source=source).inc()
        logger.critical(
            "degraded_mode_alert",
            source=source,
            project_id=project_id,
            dead_letter_id=dead_letter_id,
            attempts=exc.attempts,
            error=error,
        )
        if self._bus is not None:
            self._bus.publish(
                Topic.DEGRADED_MODE_ALERT,
                {
                    "source": source,
                    "project_id": project_id,
                    "dead_letter_id": dead_letter_id,
                    "attempts": exc.attempts,
                    "error": error,
                },
            )
