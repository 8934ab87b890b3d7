"""Supervision accumulator: rolling weighted event score per project.

Each project event adds its catalog weight to the project's accumulator. When
the accumulated weight reaches the project's tier threshold the supervisor is
activated and the accumulator resets to zero. Premium projects get a supervisory
pass on every event; Standard projects additionally on ``periodicCheck`` events;
Budget projects only on threshold crossings.

An activation and its reset are applied together: the new state is computed
under the project lock, the activation is written durably, and only then is the
reset committed. If the write cannot be made durable the state is left as it was.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional

import yaml
from cachetools import TTLCache

from overseer.config import load_policy_file, settings
from overseer.domain.models import (
    ActivationReason,
    EventKind,
    SupervisionActivation,
    SupervisionTier,
    TierMode,
    utc_now,
)
from overseer.errors import ConfigurationError
from overseer.events.bus import EventBus, Topic
from overseer.observability.logging import get_logger
from overseer.observability.metrics import SUPERVISION_ACTIVATIONS, SUPERVISION_EVENTS
from overseer.workflows.durable import DurableWriter

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_CATALOG_VERSION",
    "DEFAULT_EVENT_WEIGHTS",
    "DEFAULT_QUALIFYING_PCT",
    "EventWeightCatalog",
    "AccumulatorState",
    "AccumulatorSnapshot",
    "AccumulatorStore",
    "SupervisionAccumulator",
]

DEFAULT_CATALOG_VERSION = "1"

DEFAULT_EVENT_WEIGHTS: Dict[EventKind, float] = {
    EventKind.MICRO_STEP_FAILURE: 10.0,
    EventKind.TIMELINE_OVERRUN: 15.0,
    EventKind.COST_OVERRUN: 20.0,
    EventKind.QUALITY_GATE_FAILURE: 12.0,
    EventKind.DEPENDENCY_DEADLOCK: 25.0,
    EventKind.STALLED_PROGRESS: 8.0,
    EventKind.PERIODIC_CHECK: 0.0,
}

# Overrun events only count once the overrun exceeds this percentage.
DEFAULT_QUALIFYING_PCT: Dict[EventKind, float] = {
    EventKind.TIMELINE_OVERRUN: 50.0,
    EventKind.COST_OVERRUN: 25.0,
}


def _parse_weights(raw: Mapping[str, Any], section: str) -> Dict[EventKind, float]:
    parsed: Dict[EventKind, float] = {}
    for name, value in (raw or {}).items():
        kind = EventKind.parse(str(name))
        if kind is None:
            logger.warning("policy_unknown_event_kind", section=section, event_kind=name)
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.warning("policy_invalid_value", section=section, event_kind=name, value=value)
            continue
        if number < 0:
            logger.warning("policy_negative_value", section=section, event_kind=name, value=number)
            continue
        parsed[kind] = number
    return parsed


@dataclass(frozen=True)
class EventWeightCatalog:
    """Versioned event weights."""

    weights: Mapping[EventKind, float] = field(default_factory=lambda: dict(DEFAULT_EVENT_WEIGHTS))
    qualifying_pct: Mapping[EventKind, float] = field(
        default_factory=lambda: dict(DEFAULT_QUALIFYING_PCT)
    )
    version: str = DEFAULT_CATALOG_VERSION

    def weight_for(self, kind: EventKind, magnitude: float | None = None) -> float:
        """Weight of one event.

        Overrun events whose reported magnitude does not exceed the qualifying
        percentage weigh nothing. Without a magnitude the emitter is trusted to
        have applied the qualification already.
        """
        qualifying = self.qualifying_pct.get(kind)
        if qualifying is not None and magnitude is not None and magnitude <= qualifying:
            return 0.0
        return float(self.weights.get(kind, 0.0))

    @classmethod
    def from_policy(cls, policy: Mapping[str, Any]) -> "EventWeightCatalog":
        weights = dict(DEFAULT_EVENT_WEIGHTS)
        weights.update(_parse_weights(policy.get("event_weights") or {}, "event_weights"))
        qualifying = dict(DEFAULT_QUALIFYING_PCT)
        qualifying.update(
            _parse_weights(policy.get("qualifying_magnitude_pct") or {}, "qualifying_magnitude_pct")
        )
        return cls(
            weights=weights,
            qualifying_pct=qualifying,
            version=str(policy.get("version") or DEFAULT_CATALOG_VERSION),
        )

    @classmethod
    def load(cls, policy_file: str | None = None) -> "EventWeightCatalog":
        """Catalog from ``policy_file`` (or ``settings.policy_file``), defaults when unset.

        Raises:
            ConfigurationError: if the file is missing or is not a YAML mapping.
        """
        policy_file = policy_file if policy_file is not None else settings.policy_file
        if not policy_file:
            return cls()
        try:
            policy = load_policy_file(policy_file)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Cannot load policy file {policy_file}: {exc}") from exc
        catalog = cls.from_policy(policy)
        logger.info("event_catalog_loaded", version=catalog.version, policy_file=str(policy_file))
        return catalog


@dataclass
class AccumulatorState:
    """Mutable per-project state. Only touched while holding ``lock``."""

    project_id: str
    seen_event_ids: TTLCache
    accumulated_weight: float = 0.0
    window_start: Optional[datetime] = None
    last_event_at: Optional[datetime] = None
    activation_count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


@dataclass(frozen=True)
class AccumulatorSnapshot:
    project_id: str
    accumulated_weight: float
    window_start: Optional[datetime]
    last_event_at: Optional[datetime]
    activation_count: int


class AccumulatorStore:
    """Keyed store of accumulator states, one per active project."""

    def __init__(
        self,
        cache_size: int | None = None,
        cache_ttl: float | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._states: Dict[str, AccumulatorState] = {}
        self._lock = threading.Lock()
        self._cache_size = cache_size or settings.seen_event_cache_size
        self._cache_ttl = cache_ttl or settings.seen_event_ttl_seconds
        self._timer = timer

    def _new_state(self, project_id: str) -> AccumulatorState:
        return AccumulatorState(
            project_id=project_id,
            seen_event_ids=TTLCache(maxsize=self._cache_size, ttl=self._cache_ttl, timer=self._timer),
        )

    def start(self, project_id: str) -> AccumulatorState:
        """Create the project's state; an existing state is kept."""
        with self._lock:
            state = self._states.get(project_id)
            if state is None:
                state = self._new_state(project_id)
                self._states[project_id] = state
                logger.info("accumulator_started", project_id=project_id)
            return state

    def get_or_start(self, project_id: str) -> AccumulatorState:
        with self._lock:
            state = self._states.get(project_id)
            if state is not None:
                return state
        return self.start(project_id)

    def get(self, project_id: str) -> Optional[AccumulatorState]:
        with self._lock:
            return self._states.get(project_id)

    def close(self, project_id: str) -> bool:
        with self._lock:
            removed = self._states.pop(project_id, None)
        if removed is not None:
            logger.info("accumulator_closed", project_id=project_id)
        return removed is not None

    def project_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._states)


class SupervisionAccumulator:
    """Turns project events into supervisor activations."""

    def __init__(
        self,
        tier_for: Callable[[str], SupervisionTier],
        writer: DurableWriter,
        bus: EventBus | None = None,
        catalog: EventWeightCatalog | None = None,
        store: AccumulatorStore | None = None,
        window_seconds: float | None = None,
    ):
        self._tier_for = tier_for
        self._writer = writer
        self._bus = bus
        self.catalog = catalog or EventWeightCatalog.load()
        self.store = store or AccumulatorStore()
        self._window = timedelta(seconds=window_seconds or settings.supervision_window_seconds)

    def start_project(self, project_id: str) -> None:
        self.store.start(project_id)

    def close_project(self, project_id: str) -> None:
        self.store.close(project_id)

    def snapshot(self, project_id: str) -> Optional[AccumulatorSnapshot]:
        state = self.store.get(project_id)
        if state is None:
            return None
        with state.lock:
            return AccumulatorSnapshot(
                project_id=state.project_id,
                accumulated_weight=state.accumulated_weight,
                window_start=state.window_start,
                last_event_at=state.last_event_at,
                activation_count=state.activation_count,
            )

    def _activation_reason(
        self, tier: SupervisionTier, kind: EventKind, accumulated: float
    ) -> Optional[ActivationReason]:
        if accumulated >= tier.activation_threshold:
            return ActivationReason.THRESHOLD
        if tier.mode is TierMode.CONTINUOUS:
            return ActivationReason.CONTINUOUS
        if tier.mode is TierMode.PERIODIC and kind is EventKind.PERIODIC_CHECK:
            return ActivationReason.PERIODIC
        return None

    def record_event(
        self,
        project_id: str,
        event_kind: str,
        magnitude: float | None = None,
        event_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> Optional[SupervisionActivation]:
        """Add one event to the project's accumulator.

        Returns the activation when the event triggered one, otherwise None.
        Duplicate event ids and unknown event kinds are ignored.

        Raises:
            PersistenceExhausted: if an activation could not be written or parked;
                the accumulator is left unchanged so a redelivery retries it.
        """
        kind = EventKind.parse(event_kind)
        # Resolved outside the lock: it may read the project's budget record.
        tier = self._tier_for(project_id) if kind is not None else None
        state = self.store.get_or_start(project_id)
        with state.lock:
            if event_id is not None and event_id in state.seen_event_ids:
                SUPERVISION_EVENTS.labels(event_kind=event_kind, outcome="duplicate").inc()
                logger.info("duplicate_event_ignored", project_id=project_id, event_id=event_id)
                return None

            if kind is None or tier is None:
                SUPERVISION_EVENTS.labels(event_kind="unknown", outcome="ignored").inc()
                logger.warning("unknown_event_kind", project_id=project_id, event_kind=event_kind)
                if event_id is not None:
                    state.seen_event_ids[event_id] = True
                return None

            now = occurred_at or utc_now()

            accumulated = state.accumulated_weight
            window_start = state.window_start
            if window_start is None or now - window_start > self._window:
                if window_start is not None and accumulated > 0:
                    logger.info(
                        "accumulator_window_expired",
                        project_id=project_id,
                        discarded_weight=accumulated,
                    )
                accumulated = 0.0
                window_start = now

            weight = self.catalog.weight_for(kind, magnitude)
            accumulated = max(0.0, accumulated + weight)
            reason = self._activation_reason(tier, kind, accumulated)

            if reason is None:
                state.accumulated_weight = accumulated
                state.window_start = window_start
                state.last_event_at = now
                if event_id is not None:
                    state.seen_event_ids[event_id] = True
                SUPERVISION_EVENTS.labels(event_kind=kind.value, outcome="counted").inc()
                logger.debug(
                    "supervision_event_counted",
                    project_id=project_id,
                    event_kind=kind.value,
                    weight=weight,
                    accumulated_weight=accumulated,
                    tier=tier.value,
                )
                return None

            activation = SupervisionActivation(
                project_id=project_id,
                tier=tier,
                reason=reason,
                triggered_at=now,
                accumulated_weight_at_trigger=accumulated,
                triggering_event_kind=kind.value,
                event_id=event_id,
            )
            self._writer.write("activation", activation)

            state.accumulated_weight = 0.0
            state.window_start = now
            state.last_event_at = now
            state.activation_count += 1
            if event_id is not None:
                state.seen_event_ids[event_id] = True

        SUPERVISION_EVENTS.labels(event_kind=kind.value, outcome="counted").inc()
        SUPERVISION_ACTIVATIONS.labels(tier=tier.value, reason=reason.value).inc()
        logger.info(
            "supervision_activated",
            project_id=project_id,
            tier=tier.value,
            reason=reason.value,
            accumulated_weight=activation.accumulated_weight_at_trigger,
            event_kind=kind.value,
            catalog_version=self.catalog.version,
        )
        if self._bus is not None:
            self._bus.publish(Topic.SUPERVISION_ACTIVATED, activation)
        return activation
