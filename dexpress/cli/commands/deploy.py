"""``dexpress deploy NAME`` — run a simulated deploy locally.

Upserts the project in the local SQLite store, queues a run, drives it to
a terminal state in-process, and prints each log line as it lands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from dexpress.cli.commands.status import LEVEL_STYLES, render_run
from dexpress.config import config
from dexpress.core.errors import FieldValidationError
from dexpress.core.orchestrator import Orchestrator, parse_deploy_payload
from dexpress.core.sqlite_store import SqliteStore
from dexpress.models.logs import LogEntry
from dexpress.models.projects import DeployPayload

console = Console()


def _print_entry(entry: LogEntry) -> None:
    style = LEVEL_STYLES[entry.level] or "white"
    console.print(f"[dim]{entry.ts:%H:%M:%S}[/dim] [{style}]{entry.message}[/{style}]")


async def _deploy_and_follow(
    orchestrator: Orchestrator, payload: DeployPayload, owner: str, poll: float
) -> str:
    receipt = await orchestrator.deploy(payload, owner)
    shown = 0
    while True:
        run = await asyncio.to_thread(orchestrator.machine.get, receipt.run_id)
        entries = await asyncio.to_thread(orchestrator.logs.read_since, receipt.run_id, shown)
        for entry in entries:
            _print_entry(entry)
        shown += len(entries)
        if run is not None and run.is_terminal and not orchestrator.registry.is_active(run.id):
            # Driver is done; flush whatever landed after the terminal read
            tail = await asyncio.to_thread(orchestrator.logs.read_since, run.id, shown)
            for entry in tail:
                _print_entry(entry)
            return receipt.run_id
        await asyncio.sleep(poll)


def deploy_cmd(
    name: str = typer.Argument(..., help="Project name."),
    repo: str = typer.Option("", "--repo", "-r", help="Repository reference."),
    framework: str = typer.Option("", "--framework", "-f", help="Framework tag."),
    region: str = typer.Option("", "--region", help="Region tag."),
    owner: str = typer.Option("local-user", "--owner", "-o", help="Owner identity id."),
    db_path: Path = typer.Option(
        None, "--db", "-d", help="Path to the SQLite database (default from config)."
    ),
) -> None:
    """Deploy a project against the local store and follow the build."""
    try:
        payload = parse_deploy_payload(
            {"payload": {"name": name, "repo": repo, "framework": framework, "region": region}}
        )
    except FieldValidationError as exc:
        console.print(f"[bold red]{exc.message}[/bold red]")
        raise typer.Exit(code=1)

    store = SqliteStore(db_path or config.db_path)
    orchestrator = Orchestrator(config, store=store)

    run_id = asyncio.run(
        _deploy_and_follow(orchestrator, payload, owner, config.stream_poll_interval_seconds)
    )

    run = orchestrator.machine.get(run_id)
    console.print()
    if run is not None:
        console.print(render_run(run))
    # Print the run_id plainly for scripting
    console.print(f"[bold]{run_id}[/bold]")
