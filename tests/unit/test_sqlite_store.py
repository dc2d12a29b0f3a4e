"""Tests for SqliteStore — the local DataStore backend."""

from __future__ import annotations

import pytest

from dexpress.core.errors import StorageError, StoreConflictError
from dexpress.core.sqlite_store import SqliteStore
from dexpress.core.store import DataStore, utc_timestamp


def _project_row(project_id: str, name: str, created_at: str = "2026-01-01T00:00:00.000000+00:00"):
    return {
        "id": project_id,
        "name": name,
        "domain": f"{name}.dexpress.app",
        "owner": "user-1",
        "created_at": created_at,
    }


class TestSqliteStore:
    def test_satisfies_protocol(self, store: SqliteStore):
        assert isinstance(store, DataStore)

    def test_creates_parent_directory(self, tmp_path):
        store = SqliteStore(tmp_path / "nested" / "deeper" / "x.db")
        assert store.db_path.exists()

    def test_insert_returns_stored_row_with_defaults(self, store: SqliteStore):
        row = store.insert("projects", _project_row("p1", "alpha"))
        assert row["id"] == "p1"
        assert row["visitors"] == 0
        assert row["repo"] == ""

    def test_select_one_missing_returns_none(self, store: SqliteStore):
        assert store.select_one("projects", {"id": "nope"}) is None

    def test_select_filters_and_orders(self, store: SqliteStore):
        store.insert("projects", _project_row("p1", "a", "2026-01-01T00:00:00.000000+00:00"))
        store.insert("projects", _project_row("p2", "b", "2026-01-03T00:00:00.000000+00:00"))
        store.insert("projects", _project_row("p3", "c", "2026-01-02T00:00:00.000000+00:00"))

        rows = store.select("projects", order_by="created_at", descending=True)
        assert [r["id"] for r in rows] == ["p2", "p3", "p1"]

        rows = store.select("projects", filters={"name": "c"})
        assert [r["id"] for r in rows] == ["p3"]

    def test_ties_keep_insertion_order(self, store: SqliteStore):
        same = "2026-01-01T00:00:00.000000+00:00"
        for i in range(5):
            store.insert("projects", _project_row(f"p{i}", f"n{i}", same))
        rows = store.select("projects", order_by="created_at")
        assert [r["id"] for r in rows] == [f"p{i}" for i in range(5)]

    def test_limit(self, store: SqliteStore):
        for i in range(4):
            store.insert("projects", _project_row(f"p{i}", f"n{i}"))
        assert len(store.select("projects", limit=2)) == 2

    def test_update_returns_changed_rows(self, store: SqliteStore):
        store.insert("projects", _project_row("p1", "alpha"))
        rows = store.update("projects", {"repo": "r"}, {"id": "p1"})
        assert rows[0]["repo"] == "r"

    def test_update_without_match_is_empty(self, store: SqliteStore):
        assert store.update("projects", {"repo": "r"}, {"id": "ghost"}) == []

    def test_duplicate_name_is_conflict(self, store: SqliteStore):
        store.insert("projects", _project_row("p1", "alpha"))
        with pytest.raises(StoreConflictError):
            store.insert("projects", _project_row("p2", "alpha"))

    def test_foreign_key_enforced(self, store: SqliteStore):
        with pytest.raises(StorageError):
            store.insert(
                "run_logs",
                {"id": "l1", "run_id": "missing", "level": "info", "message": "x",
                 "ts": utc_timestamp()},
            )

    def test_unknown_table_or_column_rejected(self, store: SqliteStore):
        with pytest.raises(StorageError, match="Unknown table"):
            store.select("users")
        with pytest.raises(StorageError, match="Unknown column"):
            store.select("projects", filters={"password": "x"})
        with pytest.raises(StorageError, match="Unknown column"):
            store.select("projects", order_by="1; DROP TABLE projects")


class TestProcedures:
    def test_increment_visitors(self, store: SqliteStore):
        store.insert("projects", _project_row("p1", "alpha"))
        store.rpc("increment_visitors", {"proj_id": "p1"})
        store.rpc("increment_visitors", {"proj_id": "p1"})
        assert store.select_one("projects", {"id": "p1"})["visitors"] == 2

    def test_unknown_procedure(self, store: SqliteStore):
        with pytest.raises(StorageError, match="Unknown procedure"):
            store.rpc("drop_everything", {})


class TestUtcTimestamp:
    def test_fixed_width_even_on_whole_seconds(self):
        from datetime import datetime, timezone

        whole = utc_timestamp(datetime(2026, 1, 1, tzinfo=timezone.utc))
        fractional = utc_timestamp(datetime(2026, 1, 1, 0, 0, 0, 5, tzinfo=timezone.utc))
        assert len(whole) == len(fractional)
        assert whole < fractional
