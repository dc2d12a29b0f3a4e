"""Append-only run log stream.

Design:
- Append-only: only ``append()`` writes; there is no update or delete.
- Timestamps are server-assigned and strictly increasing within the
  process, so ordering by ``ts`` reproduces append order even when two
  appends land in the same clock tick.
- Every write goes straight to the store; readers in any process see it
  on their next ``read()``.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone

from dexpress.core.errors import NotFoundError
from dexpress.core.store import RUN_LOGS_TABLE, RUNS_TABLE, DataStore, utc_timestamp
from dexpress.models.logs import LogEntry, LogLevel

_TICK = timedelta(microseconds=1)


class LogStream:
    """Ordered, leveled log lines scoped to a run.

    Parameters
    ----------
    store:
        The shared data store.
    """

    def __init__(self, store: DataStore) -> None:
        self._store = store
        self._clock_lock = threading.Lock()
        self._last_ts = datetime.min.replace(tzinfo=timezone.utc)

    def append(self, run_id: str, level: LogLevel | str, message: str) -> LogEntry:
        """Append one entry to a run's log and return it as stored.

        Raises ``NotFoundError`` if the run does not exist and
        ``StorageError`` if the store is unavailable.
        """
        level = LogLevel(level)
        if self._store.select_one(RUNS_TABLE, {"id": run_id}) is None:
            raise NotFoundError(f"run {run_id} not found")

        entry = LogEntry(
            id=str(uuid.uuid4()),
            run_id=run_id,
            level=level,
            message=message,
            ts=self._next_timestamp(),
        )
        row = entry.model_dump(mode="json")
        row["ts"] = utc_timestamp(entry.ts)
        row = self._store.insert(RUN_LOGS_TABLE, row)
        return LogEntry.model_validate(row)

    def read(self, run_id: str) -> list[LogEntry]:
        """Return every entry for a run, oldest first.  Empty if none yet."""
        rows = self._store.select(
            RUN_LOGS_TABLE, filters={"run_id": run_id}, order_by="ts"
        )
        return [LogEntry.model_validate(row) for row in rows]

    def read_since(self, run_id: str, offset: int) -> list[LogEntry]:
        """Return the entries after the first ``offset`` ones."""
        return self.read(run_id)[offset:]

    def _next_timestamp(self) -> datetime:
        with self._clock_lock:
            now = datetime.now(timezone.utc)
            if now <= self._last_ts:
                now = self._last_ts + _TICK
            self._last_ts = now
            return now
