"""
Strata DB Backend — PostgreSQL adapter via asyncpg.

Uses a connection pool; an open transaction pins one connection until it
commits or rolls back so every migration statement runs on it.

Requires asyncpg:
    pip install strata-migrate[postgres]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import DatabaseAdapter, AdapterCapabilities

logger = logging.getLogger("strata.db.backends.postgres")

__all__ = ["PostgresAdapter", "mask_url"]

try:
    import asyncpg
    _HAS_ASYNCPG = True
except ImportError:
    asyncpg = None  # type: ignore
    _HAS_ASYNCPG = False


class PostgresAdapter(DatabaseAdapter):
    """
    PostgreSQL adapter using asyncpg with connection pooling.

    ``?`` placeholders are rewritten to ``$N`` (string-literal safe).
    """

    capabilities = AdapterCapabilities(
        transactional_ddl=True,
        param_style="numeric",  # $1, $2, ...
        name="postgresql",
    )

    def __init__(self):
        self._pool: Any = None
        self._txn_conn: Any = None
        self._txn_obj: Any = None
        self._connected = False
        self._in_transaction = False

    async def connect(self, url: str, **options) -> None:
        if self._connected:
            return

        if not _HAS_ASYNCPG:
            raise ImportError(
                "asyncpg is required for PostgreSQL support.\n"
                "Install: pip install strata-migrate[postgres]"
            )

        min_size = options.pop("pool_min_size", 1)
        max_size = options.pop("pool_max_size", 4)
        self._pool = await asyncpg.create_pool(
            url, min_size=min_size, max_size=max_size, **options
        )
        self._connected = True
        logger.info(f"PostgreSQL connected via asyncpg: {mask_url(url)}")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        if self._txn_conn is not None:
            try:
                if self._txn_obj is not None:
                    await self._txn_obj.rollback()
            finally:
                await self._pool.release(self._txn_conn)
                self._txn_conn = None
                self._txn_obj = None
                self._in_transaction = False
        if self._pool:
            await self._pool.close()
            self._pool = None
        self._connected = False
        logger.info("PostgreSQL disconnected")

    def adapt_sql(self, sql: str) -> str:
        """
        Convert ``?`` placeholders to ``$1, $2, ...`` for asyncpg.

        Skips ``?`` inside single-quoted strings.
        """
        result: List[str] = []
        param_idx = 0
        in_string = False
        i = 0
        while i < len(sql):
            ch = sql[i]
            if ch == "'" and not in_string:
                in_string = True
                result.append(ch)
            elif ch == "'" and in_string:
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    result.append("''")
                    i += 2
                    continue
                in_string = False
                result.append(ch)
            elif ch == "?" and not in_string:
                param_idx += 1
                result.append(f"${param_idx}")
            else:
                result.append(ch)
            i += 1
        return "".join(result)

    def _get_conn(self) -> Any:
        """Return the transaction connection if in txn, else None."""
        if self._in_transaction and self._txn_conn is not None:
            return self._txn_conn
        return None

    async def _run(self, method: str, sql: str, params: Optional[Sequence[Any]]) -> Any:
        if not self._connected:
            raise RuntimeError("Not connected to PostgreSQL")
        adapted_sql = self.adapt_sql(sql)
        conn = self._get_conn()
        if conn is not None:
            return await getattr(conn, method)(adapted_sql, *(params or []))
        async with self._pool.acquire() as c:
            return await getattr(c, method)(adapted_sql, *(params or []))

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        return await self._run("execute", sql, params)

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        rows = await self._run("fetch", sql, params)
        return [dict(row) for row in rows]

    async def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        row = await self._run("fetchrow", sql, params)
        if row is None:
            return None
        return dict(row)

    async def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        return await self._run("fetchval", sql, params)

    # ── Transactions ─────────────────────────────────────────────────

    async def begin(self) -> None:
        """Acquire a dedicated connection and start a transaction."""
        if self._in_transaction:
            return
        self._txn_conn = await self._pool.acquire()
        self._txn_obj = self._txn_conn.transaction()
        await self._txn_obj.start()
        self._in_transaction = True

    async def _finish(self, action: str) -> None:
        if not self._in_transaction or self._txn_obj is None:
            return
        try:
            await getattr(self._txn_obj, action)()
        finally:
            self._in_transaction = False
            await self._pool.release(self._txn_conn)
            self._txn_conn = None
            self._txn_obj = None

    async def commit(self) -> None:
        await self._finish("commit")

    async def rollback(self) -> None:
        await self._finish("rollback")

    # ── Catalog ──────────────────────────────────────────────────────

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetch_one(
            "SELECT EXISTS(SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name=?) AS e",
            [table_name],
        )
        return bool(row and row.get("e"))

    @property
    def is_connected(self) -> bool:
        return self._connected and self._pool is not None


def mask_url(url: str) -> str:
    """Mask password in URL for logging."""
    if "@" in url:
        pre, post = url.split("@", 1)
        if pre.count(":") > 1:
            scheme_user = pre.rsplit(":", 1)[0]
            return f"{scheme_user}:***@{post}"
    return url
