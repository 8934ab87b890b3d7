"""Overseer command-line interface.

Commands live in submodules under `overseer.cli.*`, each registering itself on
the root group.
"""

from __future__ import annotations

import click

from overseer.app_version import get_app_version
from overseer.observability import init_observability


@click.group()
@click.version_option(version=get_app_version(), prog_name="overseer")
def cli() -> None:
    """Overseer - adjudication and supervision decisions for project work."""
    init_observability()


def _register_commands() -> None:
    from overseer.cli import adjudicate, db, dlq, projects, supervise

    adjudicate.register(cli)
    db.register(cli)
    dlq.register(cli)
    projects.register(cli)
    supervise.register(cli)


_register_commands()


if __name__ == "__main__":
    cli()
