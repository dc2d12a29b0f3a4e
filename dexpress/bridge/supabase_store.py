"""Supabase implementation of the ``DataStore`` contract.

Bridge boundary
---------------
``supabase.Client`` exposes PostgREST's fluent query builder
(``table().select().eq().order().execute()``) and ``rpc()``.  This module
keeps that API behind ``SupabaseStore`` so the core depends only on the
``DataStore`` protocol.

The server-side schema mirrors ``dexpress.core.sqlite_store``: tables
``projects`` (unique ``name``), ``runs``, ``run_logs``, and the
``increment_visitors(proj_id)`` function.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from dexpress.core.errors import StorageError, StoreConflictError
from dexpress.core.store import Row

if TYPE_CHECKING:
    from dexpress.config import ProdConfig

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
_UNIQUE_VIOLATION = "23505"


def create_supabase_client(config: ProdConfig) -> Client:
    """Build a Supabase client from configuration."""
    if not config.supabase_url or not config.supabase_key:
        raise StorageError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(config.supabase_url, config.supabase_key)


class SupabaseStore:
    """``DataStore`` backed by a Supabase project.

    Parameters
    ----------
    client:
        A configured ``supabase.Client`` (service-role key recommended).
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: ProdConfig) -> SupabaseStore:
        return cls(create_supabase_client(config))

    @property
    def client(self) -> Client:
        return self._client

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
        query = self._filter(self._client.table(table).select("*"), filters or {})
        if order_by is not None:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        return list(self._execute(query, f"select {table}") or [])

    def select_one(self, table: str, filters: Mapping[str, Any]) -> Row | None:
        rows = self.select(table, filters=filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        data = self._execute(self._client.table(table).insert(dict(row)), f"insert {table}")
        if not data:
            raise StorageError(f"insert into {table} returned no row")
        return data[0]

    def update(
        self, table: str, values: Mapping[str, Any], filters: Mapping[str, Any]
    ) -> list[Row]:
        query = self._filter(self._client.table(table).update(dict(values)), filters)
        return list(self._execute(query, f"update {table}") or [])

    def rpc(self, name: str, params: Mapping[str, Any]) -> Any:
        return self._execute(self._client.rpc(name, dict(params)), f"rpc {name}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _filter(query: Any, filters: Mapping[str, Any]) -> Any:
        for column, value in filters.items():
            # eq.null never matches in PostgREST; NULL needs is.null
            query = query.is_(column, "null") if value is None else query.eq(column, value)
        return query

    @staticmethod
    def _execute(query: Any, what: str) -> Any:
        try:
            response = query.execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise StoreConflictError(exc.message or str(exc)) from exc
            logger.error("Supabase %s failed: %s", what, exc.message or exc)
            raise StorageError(exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase %s unreachable: %s", what, exc)
            raise StorageError(str(exc)) from exc
        return response.data
