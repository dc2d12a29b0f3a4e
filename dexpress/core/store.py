"""Data store contract shared by every component.

All reads and writes of projects, runs, and run logs go through an object
satisfying ``DataStore``: row-level CRUD with equality filters and a single
ordering column, plus named remote procedures.  The store is constructed
once per process and passed explicitly into each component.

Backends:
1. **SupabaseStore** (``dexpress.bridge.supabase_store``) — the managed
   Postgres store used in production.
2. **SqliteStore** (``dexpress.core.sqlite_store``) — a local file store for
   development, the CLI, and tests.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dexpress.config import ProdConfig

Row = dict[str, Any]

PROJECTS_TABLE = "projects"
RUNS_TABLE = "runs"
RUN_LOGS_TABLE = "run_logs"


@runtime_checkable
class DataStore(Protocol):
    """Protocol for the relational store backing projects, runs and logs.

    Implementations raise ``StorageError`` when the backend fails and
    ``StoreConflictError`` when a write violates a unique constraint.
    """

    def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every equality filter, optionally ordered.

        A ``None`` filter value matches SQL NULL.  Rows that compare equal
        on ``order_by`` keep insertion order.
        """
        ...

    def select_one(self, table: str, filters: Mapping[str, Any]) -> Row | None:
        """Return the first matching row, or ``None`` (maybe-single)."""
        ...

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        """Insert one row and return it as stored."""
        ...

    def update(
        self, table: str, values: Mapping[str, Any], filters: Mapping[str, Any]
    ) -> list[Row]:
        """Update matching rows and return them.  No match is not an error.

        Filters follow ``select``, so an update filtered on the value it
        expects to replace is a compare-and-set.
        """
        ...

    def rpc(self, name: str, params: Mapping[str, Any]) -> Any:
        """Invoke a named stored procedure."""
        ...


def build_store(config: ProdConfig) -> DataStore:
    """Construct the store selected by ``config.store_backend``."""
    if config.store_backend == "supabase":
        from dexpress.bridge.supabase_store import SupabaseStore

        return SupabaseStore.from_config(config)

    from dexpress.core.sqlite_store import SqliteStore

    return SqliteStore(config.db_path)


def utc_timestamp(value: datetime | None = None) -> str:
    """Fixed-width ISO-8601 UTC timestamp, so stored values sort as text."""
    value = value or datetime.now(timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
