"""``dexpress status RUN_ID`` — show a run and its log.

Read-only projection over the local store: the run record in a panel,
the log stream in a table.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dexpress.config import config
from dexpress.core.log_stream import LogStream
from dexpress.core.run_machine import RunStateMachine
from dexpress.core.sqlite_store import SqliteStore
from dexpress.models.logs import LogEntry, LogLevel
from dexpress.models.runs import Run, RunStatus

console = Console()

STATUS_STYLES: dict[RunStatus, str] = {
    RunStatus.QUEUED: "dim",
    RunStatus.RUNNING: "bold yellow",
    RunStatus.SUCCESS: "bold green",
    RunStatus.FAILED: "bold red",
}

LEVEL_STYLES: dict[LogLevel, str] = {
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: "",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "bold red",
}


def render_run(run: Run) -> Panel:
    style = STATUS_STYLES[run.status]
    lines = [
        f"[bold]Run:[/bold]       {run.id}",
        f"[bold]Project:[/bold]   {run.project_id}",
        f"[bold]Status:[/bold]    [{style}]{run.status.value.upper()}[/{style}]",
        f"[bold]Started:[/bold]   {run.started_at.isoformat()}",
    ]
    if run.finished_at:
        lines.append(f"[bold]Finished:[/bold]  {run.finished_at.isoformat()}")
    if run.build_time:
        lines.append(f"[bold]Build time:[/bold] {run.build_time}")
    return Panel("\n".join(lines), title="[bold]dexpress run[/bold]", border_style=style or "white")


def render_logs(entries: list[LogEntry]) -> Table:
    table = Table(title="Log", show_lines=False)
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Level", no_wrap=True)
    table.add_column("Message")
    for entry in entries:
        style = LEVEL_STYLES[entry.level]
        level = f"[{style}]{entry.level.value}[/{style}]" if style else entry.level.value
        table.add_row(entry.ts.strftime("%H:%M:%S.%f")[:-3], level, entry.message)
    return table


def status_cmd(
    run_id: str = typer.Argument(..., help="The run ID to show."),
    db_path: Path = typer.Option(
        None, "--db", "-d", help="Path to the SQLite database (default from config)."
    ),
) -> None:
    """Show a run's status and full log."""
    path = db_path or config.db_path
    if not Path(path).exists():
        console.print(f"[bold red]Database not found:[/bold red] {path}")
        raise typer.Exit(code=1)

    store = SqliteStore(path)
    run = RunStateMachine(store).get(run_id)
    if run is None:
        console.print(f"[bold red]Run not found:[/bold red] {run_id}")
        raise typer.Exit(code=1)

    console.print(render_run(run))
    console.print(render_logs(LogStream(store).read(run_id)))
