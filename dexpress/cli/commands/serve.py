"""``dexpress serve`` — run the API under uvicorn."""

from __future__ import annotations

import logging

import typer
import uvicorn

from dexpress.config import config


def serve_cmd(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)."),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from config)."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)."),
) -> None:
    """Serve the dexpress HTTP API."""
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "dexpress.api.app:create_app",
        factory=True,
        host=host or config.host,
        port=port or config.port,
        reload=reload,
        log_level=config.log_level.lower(),
    )
