"""Prometheus counters for engine outcomes."""

from __future__ import annotations

from prometheus_client import Counter

ADJUDICATIONS = Counter(
    "overseer_adjudications_total",
    "Adjudication decisions by verdict",
    ["verdict"],
)
SUPERVISION_ACTIVATIONS = Counter(
    "overseer_supervision_activations_total",
    "Supervisor activations by tier and reason",
    ["tier", "reason"],
)
SUPERVISION_EVENTS = Counter(
    "overseer_supervision_events_total",
    "Supervision events by kind and outcome (counted, duplicate, ignored)",
    ["event_kind", "outcome"],
)
SCOPE_CLASSIFICATIONS = Counter(
    "overseer_scope_changes_total",
    "Scope change classifications",
    ["classification"],
)
DEAD_LETTERS = Counter(
    "overseer_dead_letters_total",
    "Writes parked in the dead-letter table after retries were exhausted",
    ["source"],
)

__all__ = [
    "ADJUDICATIONS",
    "SUPERVISION_ACTIVATIONS",
    "SUPERVISION_EVENTS",
    "SCOPE_CLASSIFICATIONS",
    "DEAD_LETTERS",
]
