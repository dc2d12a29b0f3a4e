"""Main Typer application — imports and registers all CLI commands.

Entry point: ``dexpress`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from dexpress.cli.commands.deploy import deploy_cmd
from dexpress.cli.commands.init_db import init_db_cmd
from dexpress.cli.commands.serve import serve_cmd
from dexpress.cli.commands.status import status_cmd

app = typer.Typer(
    name="dexpress",
    help="dexpress: projects, simulated deploys, and run logs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="serve", help="Serve the HTTP API.")(serve_cmd)
app.command(name="init-db", help="Create the local SQLite schema.")(init_db_cmd)
app.command(name="deploy", help="Run a simulated deploy against the local store.")(deploy_cmd)
app.command(name="status", help="Show a run and its logs.")(status_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
