"""``dexpress init-db`` — create the local SQLite schema."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from dexpress.config import config
from dexpress.core.sqlite_store import SqliteStore

console = Console()


def init_db_cmd(
    db_path: Path = typer.Option(
        None, "--db", "-d", help="Path to the SQLite database (default from config)."
    ),
) -> None:
    """Create projects, runs and run_logs tables if missing."""
    store = SqliteStore(db_path or config.db_path)
    console.print(f"[green]Schema ready:[/green] {store.db_path}")
