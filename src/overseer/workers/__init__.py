"""Background workers."""

from overseer.workers.periodic import PeriodicSupervisionScheduler, run_scheduler

__all__ = ["PeriodicSupervisionScheduler", "run_scheduler"]
