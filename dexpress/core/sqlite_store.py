"""SQLite implementation of the ``DataStore`` contract.

Design:
- One connection per call, WAL journal mode for concurrent readers, so the
  store is safe to call from worker threads.
- Foreign keys enforced: a log line cannot reference a missing run.
- ``projects.name`` is UNIQUE, so concurrent first deploys of the same
  name cannot create two rows.
- Ties on the ordering column fall back to ``rowid`` (insertion order).
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from dexpress.core.errors import StorageError, StoreConflictError
from dexpress.core.store import PROJECTS_TABLE, RUN_LOGS_TABLE, RUNS_TABLE, Row


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_PROJECTS = """
CREATE TABLE IF NOT EXISTS projects (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    repo        TEXT NOT NULL DEFAULT '',
    framework   TEXT NOT NULL DEFAULT '',
    region      TEXT NOT NULL DEFAULT '',
    domain      TEXT NOT NULL DEFAULT '',
    owner       TEXT,
    visitors    INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL
);
"""

_CREATE_RUNS = """
CREATE TABLE IF NOT EXISTS runs (
    id           TEXT PRIMARY KEY,
    project_id   TEXT NOT NULL REFERENCES projects(id),
    status       TEXT NOT NULL,
    started_at   TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    finished_at  TEXT,
    build_time   TEXT
);
"""

_CREATE_RUN_LOGS = """
CREATE TABLE IF NOT EXISTS run_logs (
    id       TEXT PRIMARY KEY,
    run_id   TEXT NOT NULL REFERENCES runs(id),
    level    TEXT NOT NULL,
    message  TEXT NOT NULL,
    ts       TEXT NOT NULL
);
"""

_CREATE_IDX_RUNS_PROJECT = """
CREATE INDEX IF NOT EXISTS idx_runs_project ON runs(project_id, created_at);
"""

_CREATE_IDX_LOGS_RUN = """
CREATE INDEX IF NOT EXISTS idx_run_logs_run ON run_logs(run_id, ts);
"""

_COLUMNS: dict[str, frozenset[str]] = {
    PROJECTS_TABLE: frozenset(
        {"id", "name", "repo", "framework", "region", "domain", "owner",
         "visitors", "created_at"}
    ),
    RUNS_TABLE: frozenset(
        {"id", "project_id", "status", "started_at", "created_at",
         "finished_at", "build_time"}
    ),
    RUN_LOGS_TABLE: frozenset({"id", "run_id", "level", "message", "ts"}),
}


class SqliteStore:
    """File-backed ``DataStore``.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._procedures: dict[str, Callable[[sqlite3.Connection, Mapping[str, Any]], Any]] = {
            "increment_visitors": _increment_visitors,
        }
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        with self._run() as conn:
            conn.execute(_CREATE_PROJECTS)
            conn.execute(_CREATE_RUNS)
            conn.execute(_CREATE_RUN_LOGS)
            conn.execute(_CREATE_IDX_RUNS_PROJECT)
            conn.execute(_CREATE_IDX_LOGS_RUN)

    # ------------------------------------------------------------------
    # DataStore contract
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        where, params = self._where(table, filters or {})
        sql = f"SELECT * FROM {table}{where}"
        direction = "DESC" if descending else "ASC"
        if order_by is not None:
            self._check_columns(table, [order_by])
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        else:
            sql += f" ORDER BY rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._run() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    def select_one(self, table: str, filters: Mapping[str, Any]) -> Row | None:
        rows = self.select(table, filters=filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        columns = list(row)
        self._check_columns(table, columns)
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING *"
        )
        with self._run() as conn:
            stored = conn.execute(sql, [row[c] for c in columns]).fetchone()
        return dict(stored)

    def update(
        self, table: str, values: Mapping[str, Any], filters: Mapping[str, Any]
    ) -> list[Row]:
        if not values:
            return self.select(table, filters=filters)
        columns = list(values)
        self._check_columns(table, columns)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        where, params = self._where(table, filters)
        sql = f"UPDATE {table} SET {assignments}{where} RETURNING *"
        with self._run() as conn:
            rows = conn.execute(sql, [values[c] for c in columns] + params).fetchall()
        return [dict(row) for row in rows]

    def rpc(self, name: str, params: Mapping[str, Any]) -> Any:
        procedure = self._procedures.get(name)
        if procedure is None:
            raise StorageError(f"Unknown procedure: {name}")
        with self._run() as conn:
            return procedure(conn, params)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self) -> _Transaction:
        return _Transaction(self)

    def _check_columns(self, table: str, columns: list[str]) -> None:
        known = _COLUMNS.get(table)
        if known is None:
            raise StorageError(f"Unknown table: {table}")
        unknown = [c for c in columns if c not in known]
        if unknown:
            raise StorageError(f"Unknown column(s) for {table}: {', '.join(unknown)}")

    def _where(self, table: str, filters: Mapping[str, Any]) -> tuple[str, list[Any]]:
        self._check_columns(table, list(filters))
        if not filters:
            return "", []
        clause = " AND ".join(
            f"{c} IS NULL" if v is None else f"{c} = ?" for c, v in filters.items()
        )
        return f" WHERE {clause}", [v for v in filters.values() if v is not None]


class _Transaction:
    """Opens a connection, commits on success, and maps sqlite errors."""

    def __init__(self, store: SqliteStore) -> None:
        self._store = store
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> sqlite3.Connection:
        try:
            self._conn = self._store._connect()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        return self._conn

    def __exit__(self, exc_type, exc, tb) -> bool:
        conn = self._conn
        assert conn is not None
        try:
            if exc_type is None:
                conn.commit()
            else:
                conn.rollback()
        except sqlite3.Error as commit_exc:
            exc = exc or commit_exc
        finally:
            conn.close()
        if isinstance(exc, sqlite3.IntegrityError) and "UNIQUE" in str(exc):
            raise StoreConflictError(str(exc)) from exc
        if isinstance(exc, sqlite3.Error):
            raise StorageError(str(exc)) from exc
        return False


def _increment_visitors(conn: sqlite3.Connection, params: Mapping[str, Any]) -> None:
    conn.execute(
        "UPDATE projects SET visitors = visitors + 1 WHERE id = ?",
        (params["proj_id"],),
    )
