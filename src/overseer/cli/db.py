"""Database CLI commands."""

from __future__ import annotations

import click

from overseer.cli.ui import console


@click.group()
def db() -> None:
    """Database utilities."""


@db.command("init")
def db_init() -> None:
    """Create any missing tables (use alembic for managed deployments)."""
    from overseer.storage.database import init_db

    try:
        init_db()
    except Exception as exc:
        raise click.ClickException(f"Database initialization failed: {exc}") from exc
    console.print("[green]Database tables ready[/green]")


def register(cli: click.Group) -> None:
    cli.add_command(db)
