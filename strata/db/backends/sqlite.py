"""
Strata DB Backend — SQLite adapter via aiosqlite.

The default backend. SQLite runs DDL inside transactions, so migrations
applied with ``atomic=True`` roll back cleanly on failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import DatabaseAdapter, AdapterCapabilities

try:
    import aiosqlite
except ImportError:
    aiosqlite = None  # type: ignore[assignment]

logger = logging.getLogger("strata.db.backends.sqlite")

__all__ = ["SQLiteAdapter", "sqlite_path"]


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite adapter using aiosqlite.

    Outside an explicit transaction every statement is committed as soon
    as it runs.
    """

    capabilities = AdapterCapabilities(
        transactional_ddl=True,
        param_style="qmark",
        name="sqlite",
    )

    def __init__(self):
        self._connection: Any = None
        self._connected = False
        self._lock = asyncio.Lock()
        self._in_transaction = False

    async def connect(self, url: str, **options) -> None:
        if self._connected:
            return
        if aiosqlite is None:
            raise ImportError(
                "aiosqlite is required for SQLite backend. "
                "Install: pip install aiosqlite"
            )
        async with self._lock:
            if self._connected:
                return
            db_path = self._parse_url(url)
            self._connection = await aiosqlite.connect(db_path)
            if db_path != ":memory:":
                await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA foreign_keys=ON")
            self._connection.row_factory = aiosqlite.Row
            self._connected = True
            logger.info(f"SQLite connected: {db_path}")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        async with self._lock:
            if self._connection:
                await self._connection.close()
                self._connection = None
            self._connected = False
            self._in_transaction = False
            logger.info("SQLite disconnected")

    def _require_connection(self) -> Any:
        if not self._connected:
            raise RuntimeError("Not connected")
        return self._connection

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        conn = self._require_connection()
        cursor = await conn.execute(sql, params or [])
        if not self._in_transaction:
            await conn.commit()
        return cursor

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        conn = self._require_connection()
        cursor = await conn.execute(sql, params or [])
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        conn = self._require_connection()
        cursor = await conn.execute(sql, params or [])
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    async def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        conn = self._require_connection()
        cursor = await conn.execute(sql, params or [])
        row = await cursor.fetchone()
        if row is None:
            return None
        return row[0]

    # ── Transactions ─────────────────────────────────────────────────

    async def begin(self) -> None:
        await self._require_connection().execute("BEGIN")
        self._in_transaction = True

    async def commit(self) -> None:
        await self._require_connection().commit()
        self._in_transaction = False

    async def rollback(self) -> None:
        await self._require_connection().rollback()
        self._in_transaction = False

    # ── Catalog ──────────────────────────────────────────────────────

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetch_one(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            [table_name],
        )
        return row is not None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @staticmethod
    def _parse_url(url: str) -> str:
        return sqlite_path(url)


def sqlite_path(url: str) -> str:
    """Extract file path from sqlite URL."""
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            path = url[len(prefix):]
            return path or ":memory:"
    return url.replace("sqlite:", "").lstrip("/") or ":memory:"
