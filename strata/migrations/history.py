"""
Strata Migration History — the persisted record of applied migrations.

One row per applied migration in a dedicated table (``strata_migrations``
by default):

    id          BIGINT primary key, autoincrement
    namespace   TEXT NOT NULL     -- the migration's app
    name        TEXT NOT NULL     -- the migration id
    applied_at  TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    UNIQUE (namespace, name)

The table's DDL is produced by the active dialect from a ``CreateTable``
operation, so the history table looks like any other migrated table.
Application code never writes to it; ``MigrationExecutor`` does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Set, Union

from ..faults import MigrationNotFoundFault
from .columns import C
from .dialects import MigrationDialect, get_dialect
from .operations import CreateTable, UniqueConstraint
from .state import MigrationKey, MigrationState

logger = logging.getLogger("strata.migrations.history")

DEFAULT_HISTORY_TABLE = "strata_migrations"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable applied_at value in history: {value!r}")
        return None


@dataclass
class AppliedMigration:
    """One row of the history table."""

    id: int
    namespace: str
    name: str
    applied_at: Optional[datetime]

    @property
    def key(self) -> MigrationKey:
        return (self.namespace, self.name)

    @property
    def label(self) -> str:
        return f"{self.namespace}/{self.name}"


class MigrationHistory:
    """
    Reads and writes the history table through a ``Database``.

    Usage:
        history = MigrationHistory(db, "sqlite")
        await history.ensure_table()
        await history.record_applied("default", "0001_initial")
        await history.is_applied("default", "0001_initial")   # True
    """

    def __init__(
        self,
        db: Any,
        dialect: Union[MigrationDialect, str] = "sqlite",
        table: str = DEFAULT_HISTORY_TABLE,
    ):
        self.db = db
        self.dialect = get_dialect(dialect)
        self.table = table
        self._quoted = self.dialect.quote_identifier(table)

    def create_table_operation(self) -> CreateTable:
        return CreateTable(
            name=self.table,
            columns=[
                C.bigint("id").primary_key().autoincrement(),
                C.text("namespace").not_null(),
                C.text("name").not_null(),
                C.timestamp("applied_at").not_null().default_expr("CURRENT_TIMESTAMP"),
            ],
            constraints=[UniqueConstraint(("namespace", "name"))],
            if_not_exists=True,
        )

    def create_table_sql(self) -> List[str]:
        return self.dialect.generate_sql(self.create_table_operation())

    async def ensure_table(self) -> None:
        """Create the history table if it does not exist. Idempotent."""
        for sql in self.create_table_sql():
            await self.db.execute(sql)
        logger.debug(f"History table ready: {self.table}")

    async def table_exists(self) -> bool:
        return await self.db.table_exists(self.table)

    # ── Writes ───────────────────────────────────────────────────────

    async def record_applied(self, app: str, name: str) -> None:
        await self.db.execute(
            f"INSERT INTO {self._quoted} (namespace, name) VALUES (?, ?)",
            [app, name],
        )
        logger.debug(f"Recorded {app}/{name} as applied")

    async def record_unapplied(self, app: str, name: str) -> None:
        """
        Remove a migration's row.

        Raises:
            MigrationNotFoundFault: the migration is not recorded as applied
        """
        if not await self.is_applied(app, name):
            raise MigrationNotFoundFault(app, name)
        await self.db.execute(
            f"DELETE FROM {self._quoted} WHERE namespace = ? AND name = ?",
            [app, name],
        )
        logger.debug(f"Removed {app}/{name} from history")

    # ── Reads ────────────────────────────────────────────────────────

    async def is_applied(self, app: str, name: str) -> bool:
        row = await self.db.fetch_one(
            f"SELECT 1 AS applied FROM {self._quoted} WHERE namespace = ? AND name = ?",
            [app, name],
        )
        return row is not None

    def _row(self, row: dict) -> AppliedMigration:
        return AppliedMigration(
            id=int(row["id"]),
            namespace=row["namespace"],
            name=row["name"],
            applied_at=_parse_timestamp(row["applied_at"]),
        )

    async def get_applied(self) -> List[AppliedMigration]:
        """All applied migrations, oldest first."""
        rows = await self.db.fetch_all(
            f"SELECT id, namespace, name, applied_at FROM {self._quoted} ORDER BY id"
        )
        return [self._row(r) for r in rows]

    async def get_applied_for_app(self, app: str) -> List[AppliedMigration]:
        rows = await self.db.fetch_all(
            f"SELECT id, namespace, name, applied_at FROM {self._quoted} "
            f"WHERE namespace = ? ORDER BY id",
            [app],
        )
        return [self._row(r) for r in rows]

    async def get_last_applied(self, app: str) -> Optional[AppliedMigration]:
        row = await self.db.fetch_one(
            f"SELECT id, namespace, name, applied_at FROM {self._quoted} "
            f"WHERE namespace = ? ORDER BY id DESC LIMIT 1",
            [app],
        )
        return self._row(row) if row is not None else None

    async def count_applied(self, app: Optional[str] = None) -> int:
        if app is None:
            value = await self.db.fetch_val(f"SELECT COUNT(*) FROM {self._quoted}")
        else:
            value = await self.db.fetch_val(
                f"SELECT COUNT(*) FROM {self._quoted} WHERE namespace = ?",
                [app],
            )
        return int(value or 0)

    async def get_applied_set(self) -> Set[MigrationKey]:
        rows = await self.db.fetch_all(f"SELECT namespace, name FROM {self._quoted}")
        return {(r["namespace"], r["name"]) for r in rows}

    async def load_state(self) -> MigrationState:
        """The history as an in-memory ``MigrationState`` (empty if no table)."""
        state = MigrationState()
        if not await self.table_exists():
            return state
        for applied in await self.get_applied():
            state.mark_applied(applied.key, applied_at=applied.applied_at)
        return state

    def __repr__(self) -> str:
        return f"MigrationHistory(table={self.table!r}, dialect={self.dialect.name!r})"
