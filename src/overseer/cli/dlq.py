"""Dead letter queue CLI commands."""

from __future__ import annotations

from uuid import UUID

import click

from overseer.cli.ui import console, render_dead_letters
from overseer.storage.database import get_session
from overseer.storage.repositories import DeadLetterRepository


@click.group()
def dlq() -> None:
    """Inspect and replay writes parked in the dead-letter table."""


@dlq.command("list")
@click.option("--source", default=None, help="Filter by source (adjudication, activation, ...)")
def dlq_list(source: str | None) -> None:
    """List unresolved dead letters."""
    with get_session() as session:
        rows = [dl.to_dict() for dl in DeadLetterRepository(session).get_unresolved(source=source)]
    if not rows:
        console.print("[green]No unresolved dead letters[/green]")
        return
    render_dead_letters(rows)


@dlq.command("replay")
@click.argument("dead_letter_id", required=False)
@click.option("--all", "replay_all", is_flag=True, help="Replay every unresolved dead letter")
@click.option("--source", default=None, help="With --all, only replay this source")
def dlq_replay(dead_letter_id: str | None, replay_all: bool, source: str | None) -> None:
    """Replay a dead letter by ID, or all of them with --all."""
    from overseer.workflows.dlq_replay import replay_dead_letter, replay_unresolved

    if not dead_letter_id and not replay_all:
        raise click.UsageError("Pass a DEAD_LETTER_ID or --all")

    if replay_all:
        with get_session() as session:
            results = replay_unresolved(session, source=source)
        console.print_json(data={"results": results, "count": len(results)})
        return

    try:
        dl_id = UUID(dead_letter_id)
    except ValueError as exc:
        raise click.ClickException(f"Invalid dead letter id: {dead_letter_id}") from exc

    with get_session() as session:
        repo = DeadLetterRepository(session)
        dl = repo.get(dl_id)
        if not dl:
            raise click.ClickException(f"Dead letter {dead_letter_id} not found")
        repo.increment_attempts(dl.id)
        try:
            result = replay_dead_letter(session, dl)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
    console.print_json(data=result)


def register(cli: click.Group) -> None:
    cli.add_command(dlq)
