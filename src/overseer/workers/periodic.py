"""Periodic supervision checks for Standard-tier projects.

The scheduler feeds the accumulator like any other event source. Event ids are
derived from the interval slot, so a check replayed within the same slot (two
schedulers, a restart) is ignored as a duplicate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List

import anyio

from overseer.config import settings
from overseer.domain.models import (
    EventKind,
    ProjectEvent,
    SupervisionActivation,
    SupervisionTier,
    utc_now,
)
from overseer.engine.service import DecisionEngine
from overseer.errors import DomainError
from overseer.observability.logging import get_logger

logger = get_logger(__name__)

__all__ = ["PeriodicSupervisionScheduler", "run_scheduler"]


class PeriodicSupervisionScheduler:
    def __init__(
        self,
        engine: DecisionEngine,
        interval_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.engine = engine
        self.interval_seconds = float(interval_seconds or settings.periodic_check_interval_seconds)
        self._clock = clock

    def slot_for(self, when: datetime) -> int:
        return int(when.timestamp() // self.interval_seconds)

    def event_id_for(self, project_id: str, slot: int) -> str:
        return f"periodic:{project_id}:{slot}"

    def run_once(self) -> List[SupervisionActivation]:
        """Emit one ``periodicCheck`` per active Standard-tier project for the current slot."""
        now = self._clock()
        slot = self.slot_for(now)
        activations: List[SupervisionActivation] = []
        checked = 0
        for project_id in self.engine.active_project_ids():
            try:
                if self.engine.resolver.resolve(project_id).tier is not SupervisionTier.STANDARD:
                    continue
                checked += 1
                activation = self.engine.record_event(
                    ProjectEvent(
                        project_id=project_id,
                        event_kind=EventKind.PERIODIC_CHECK.value,
                        event_id=self.event_id_for(project_id, slot),
                        timestamp=now,
                    )
                )
            except DomainError as exc:
                logger.warning(
                    "periodic_check_failed",
                    project_id=project_id,
                    error=exc.error,
                    detail=str(exc),
                )
                continue
            if activation is not None:
                activations.append(activation)
        logger.info(
            "periodic_checks_complete",
            slot=slot,
            projects_checked=checked,
            activations=len(activations),
        )
        return activations


async def run_scheduler(
    engine: DecisionEngine | None = None,
    *,
    once: bool = False,
    interval_seconds: float | None = None,
) -> None:
    """Run the periodic check loop.

    Args:
        once: If true, run a single pass and exit (useful for tests/ops).
    """
    engine = engine or DecisionEngine()
    scheduler = PeriodicSupervisionScheduler(engine, interval_seconds=interval_seconds)
    engine.restore_active_projects()
    logger.info("scheduler_start", interval_seconds=scheduler.interval_seconds)

    while True:
        await anyio.to_thread.run_sync(scheduler.run_once)
        if once:
            return
        await anyio.sleep(scheduler.interval_seconds)
