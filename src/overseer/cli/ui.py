"""Shared CLI UI helpers (Rich formatting)."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.table import Table

from overseer.domain.models import AdjudicationDecision, Classification, Verdict

console = Console()


def format_verdict(verdict: str) -> str:
    """Return colorized verdict or classification for terminal output."""
    colors = {
        Verdict.PROCEED.value: "green",
        Verdict.INVESTIGATE.value: "yellow",
        Verdict.REJECT.value: "red",
        Classification.LOCAL_HANDLING.value: "green",
        Classification.ESCALATE.value: "red",
    }
    color = colors.get(verdict, "white")
    return f"[{color}]{verdict}[/{color}]"


def _fmt(value: Any) -> str:
    return "-" if value is None else f"{value:.3f}"


def render_decision(decision: AdjudicationDecision) -> None:
    """Render one decision with its per-factor breakdown."""
    table = Table(title=f"Step {decision.step_id}: {format_verdict(decision.verdict.value)}")
    table.add_column("Factor", style="cyan")
    table.add_column("Badness", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Contribution", justify="right", style="bold")

    badness = decision.badness.as_dict()
    weights = decision.weights.as_dict()
    for name, contribution in decision.contributions.as_dict().items():
        table.add_row(name, _fmt(badness[name]), _fmt(weights[name]), _fmt(contribution))

    console.print(table)
    console.print(f"Weighted score: [bold]{decision.weighted_score:.3f}[/bold]")
    if decision.flags:
        console.print(f"Flags: {', '.join(decision.flags)}")
    console.print(decision.rationale)


def render_dead_letters(rows: Iterable[Mapping[str, Any]]) -> None:
    table = Table(title="Unresolved dead letters")
    table.add_column("ID", style="white")
    table.add_column("Source", style="cyan")
    table.add_column("Project", style="magenta")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", style="red")
    table.add_column("Created", style="white")
    for row in rows:
        table.add_row(
            row["id"],
            row["source"],
            row.get("project_id") or "-",
            str(row.get("attempts") or 0),
            (row.get("error") or "")[:60],
            row.get("created_at") or "-",
        )
    console.print(table)
