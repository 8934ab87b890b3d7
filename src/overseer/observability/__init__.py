"""Overseer observability module - logging and metrics.

Observability is handled at two levels:
1. **Logging**: Structured JSON logs via structlog
2. **Metrics**: Prometheus counters for verdicts, activations, classifications
   and dead letters (exposed by the API at ``/metrics``)

Usage:
    from overseer.observability import get_logger

    logger = get_logger(__name__)
    logger.info("adjudication_decided", step_id=step_id)
"""

from __future__ import annotations

from overseer.observability.logging import configure_logging, get_logger, project_context

__all__ = [
    "configure_logging",
    "get_logger",
    "project_context",
    "init_observability",
]

_OBSERVABILITY_INITIALIZED = False


def init_observability() -> None:
    """Initialize logging for the process (idempotent).

    This is intentionally *not* executed on import so `overseer` can be used as a
    library without mutating global logging configuration.
    """
    global _OBSERVABILITY_INITIALIZED
    if _OBSERVABILITY_INITIALIZED:
        return
    configure_logging()
    _OBSERVABILITY_INITIALIZED = True
