"""Supervision CLI commands."""

from __future__ import annotations

import anyio
import click


@click.group()
def supervise() -> None:
    """Supervision scheduler."""


@supervise.command("run")
@click.option("--once", is_flag=True, help="Run a single periodic-check pass and exit")
@click.option("--interval", type=float, default=None, help="Seconds between passes")
def supervise_run(once: bool, interval: float | None) -> None:
    """Emit periodic checks for active Standard-tier projects."""
    from overseer.workers import run_scheduler

    async def _run() -> None:
        await run_scheduler(once=once, interval_seconds=interval)

    try:
        anyio.run(_run)
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def register(cli: click.Group) -> None:
    cli.add_command(supervise)
