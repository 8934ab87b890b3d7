"""Project management CLI commands."""

from __future__ import annotations

import click

from overseer.cli.ui import console
from overseer.domain.models import ProjectStatus, SupervisionTier, WeightPreset
from overseer.errors import DomainError


@click.group()
def project() -> None:
    """Create projects and move them through their lifecycle."""


@project.command("create")
@click.argument("project_id")
@click.option("--name", required=True)
@click.option("--description", default=None)
@click.option(
    "--preset",
    type=click.Choice([p.value for p in WeightPreset]),
    default=None,
    help="Decision weight preset",
)
@click.option("--tier", type=click.Choice([t.value for t in SupervisionTier]), default=None)
@click.option("--total-budget", type=float, default=None, help="Total budget (USD)")
@click.option("--budget-remaining", type=float, default=None)
@click.option("--schedule-slack", type=float, default=None, help="Schedule slack (hours)")
@click.option("--creep-tolerance", type=float, default=None, help="Cumulative scope creep tolerance (%)")
def project_create(
    project_id: str,
    name: str,
    description: str | None,
    preset: str | None,
    tier: str | None,
    total_budget: float | None,
    budget_remaining: float | None,
    schedule_slack: float | None,
    creep_tolerance: float | None,
) -> None:
    """Create PROJECT_ID with an optional budget record."""
    from overseer.engine.service import DecisionEngine

    budget = {
        "preset": preset,
        "tier": tier,
        "total_budget_usd": total_budget,
        "budget_remaining_usd": budget_remaining,
        "schedule_slack_hours": schedule_slack,
        "creep_tolerance_pct": creep_tolerance,
    }
    budget = {key: value for key, value in budget.items() if value is not None}
    try:
        result = DecisionEngine().create_project(
            project_id, name, description=description, budget=budget or None
        )
    except DomainError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print_json(data=result)


@project.command("status")
@click.argument("project_id")
@click.argument("status", type=click.Choice([s.value for s in ProjectStatus]))
def project_status(project_id: str, status: str) -> None:
    """Set PROJECT_ID's lifecycle status."""
    from overseer.engine.service import DecisionEngine

    try:
        result = DecisionEngine().set_status(project_id, ProjectStatus(status))
    except DomainError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print_json(data=result)


def register(cli: click.Group) -> None:
    cli.add_command(project)
