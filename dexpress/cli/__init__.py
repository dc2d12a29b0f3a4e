"""dexpress CLI — Typer-based command-line interface.

Provides the ``dexpress`` command with subcommands for serving the API,
initializing the local database, running a local deploy, and inspecting
a run.

All output uses Rich for formatted terminal display.
"""
