"""Adjudicate a macro step estimate from the command line."""

from __future__ import annotations

from pathlib import Path

import click
from pydantic import ValidationError

from overseer.cli.ui import console, render_decision
from overseer.config import load_yaml
from overseer.domain.models import AdjudicationContext, MacroStepEstimate
from overseer.errors import DomainError


@click.command("adjudicate")
@click.argument("project_id")
@click.argument("estimate_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--budget-remaining", type=float, default=None, help="Override budget remaining (USD)")
@click.option("--schedule-slack", type=float, default=None, help="Override schedule slack (hours)")
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON")
def adjudicate(
    project_id: str,
    estimate_file: Path,
    budget_remaining: float | None,
    schedule_slack: float | None,
    as_json: bool,
) -> None:
    """Adjudicate the estimate in ESTIMATE_FILE (YAML or JSON) for PROJECT_ID."""
    from overseer.engine.service import DecisionEngine

    try:
        estimate = MacroStepEstimate.model_validate(load_yaml(estimate_file))
    except ValidationError as exc:
        raise click.ClickException(f"Invalid estimate: {exc}") from exc

    context = AdjudicationContext(
        budget_remaining_usd=budget_remaining, schedule_slack_hours=schedule_slack
    )
    try:
        decision = DecisionEngine().adjudicate_step(project_id, estimate, context)
    except DomainError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        console.print_json(data=decision.model_dump(mode="json"))
    else:
        render_decision(decision)


def register(cli: click.Group) -> None:
    cli.add_command(adjudicate)
