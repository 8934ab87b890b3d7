"""Dead letter replay logic shared by API and CLI.

Replays a parked record into its own table. Writers are idempotent on record
ids, so replaying an entry whose original write eventually landed is harmless.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from overseer.observability.logging import get_logger
from overseer.storage.repositories import DeadLetterRepository
from overseer.workflows.durable import RECORD_SOURCES, write_record

logger = get_logger(__name__)

__all__ = ["replay_dead_letter", "replay_unresolved"]


def replay_dead_letter(session: Session, dead_letter: Any) -> dict[str, Any]:
    """Replay a dead-lettered record and mark it resolved.

    Args:
        session: Session the replayed write and the resolution share
        dead_letter: storage.models.DeadLetter-like object

    Raises:
        ValueError for unknown sources or payloads that no longer validate.
    """
    source = getattr(dead_letter, "source", None)
    payload = getattr(dead_letter, "payload", None) or {}

    if not isinstance(payload, dict):
        raise ValueError("Dead letter payload must be a JSON object")
    if source not in RECORD_SOURCES:
        raise ValueError(f"Unknown source: {source}")

    model, _ = RECORD_SOURCES[source]
    try:
        record = model.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Dead letter {dead_letter.id} payload is invalid: {exc}") from exc

    write_record(session, source, record)
    DeadLetterRepository(session).mark_resolved(dead_letter.id)
    logger.info("dead_letter_replayed", id=str(dead_letter.id), source=source)
    return {
        "status": "replayed",
        "dead_letter_id": str(dead_letter.id),
        "source": source,
        "project_id": getattr(dead_letter, "project_id", None),
    }


def replay_unresolved(session: Session, source: str | None = None) -> list[dict[str, Any]]:
    """Replay every unresolved dead letter.

    Entries whose payload cannot be replayed are left unresolved with the error
    recorded. Database errors propagate.
    """
    repo = DeadLetterRepository(session)
    results: list[dict[str, Any]] = []
    for dead_letter in repo.get_unresolved(source=source):
        try:
            results.append(replay_dead_letter(session, dead_letter))
        except ValueError as exc:
            repo.increment_attempts(dead_letter.id, error=str(exc))
            logger.warning(
                "dead_letter_replay_failed",
                id=str(dead_letter.id),
                source=dead_letter.source,
                error=str(exc),
            )
            results.append(
                {
                    "status": "failed",
                    "dead_letter_id": str(dead_letter.id),
                    "source": dead_letter.source,
                    "error": str(exc),
                }
            )
    return results
