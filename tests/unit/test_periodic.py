"""Unit tests for the periodic supervision scheduler."""

from __future__ import annotations

from datetime import datetime, timezone

import anyio

from overseer.domain.models import ActivationReason, ProjectStatus
from overseer.workers.periodic import PeriodicSupervisionScheduler, run_scheduler

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def _scheduler(engine) -> PeriodicSupervisionScheduler:
    return PeriodicSupervisionScheduler(engine, interval_seconds=3600, clock=lambda: NOW)


def test_only_active_standard_projects_are_checked(engine, make_project) -> None:
    make_project("budget", total_budget_usd=10.0)
    make_project("standard", total_budget_usd=500.0)
    make_project("premium", total_budget_usd=5000.0)
    make_project("paused", status=ProjectStatus.PLANNING, total_budget_usd=500.0)

    activations = _scheduler(engine).run_once()

    assert [a.project_id for a in activations] == ["standard"]
    assert activations[0].reason is ActivationReason.PERIODIC
    assert activations[0].event_id == f"periodic:standard:{int(NOW.timestamp() // 3600)}"


def test_same_slot_is_not_checked_twice(engine, make_project) -> None:
    make_project("standard", total_budget_usd=500.0)
    scheduler = _scheduler(engine)

    first = scheduler.run_once()
    second = scheduler.run_once()

    assert len(first) == 1
    assert second == []
    assert len(engine.activations("standard")) == 1


def test_run_scheduler_once(engine, make_project) -> None:
    make_project("standard", total_budget_usd=500.0)

    anyio.run(lambda: run_scheduler(engine, once=True, interval_seconds=60))

    assert len(engine.activations("standard")) == 1
