"""Run log entry models (append-only, ordered by timestamp)."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogEntry(BaseModel):
    """A single line in a run's log stream.

    Entries are never updated or deleted.  ``ts`` is assigned by the
    server at append time.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    run_id: str
    level: LogLevel
    message: str
    ts: datetime
