"""
Strata Migration Executor — applies and rolls back migrations on a database.

    executor = MigrationExecutor(db, "sqlite")
    await executor.init()
    await executor.apply_all(migrations)

Each ``apply``:

1. skips (with a warning) a migration that is already applied;
2. fails with ``MissingDependencyFault`` before touching the database if
   a dependency is not applied;
3. renders every operation through the dialect and runs the statements
   in order;
4. records the migration in the history table.

``rollback`` mirrors this with the migration's down operations and
refuses (``NotReversibleFault``) to run a migration it cannot reverse.

In dry-run mode the same control flow runs, but statements are written to
``output`` as ``statement;`` lines and the history table is never written.
Applies and rollbacks performed during the dry run are tracked in memory
so that a dry ``apply_all`` honors dependencies between its migrations.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional, Sequence, TextIO, Union

from ..faults import MissingDependencyFault, NotReversibleFault
from .dialects import MigrationDialect, get_dialect
from .history import DEFAULT_HISTORY_TABLE, MigrationHistory
from .migration import Migration
from .operations import Operation, reverse_operations
from .state import MigrationKey, MigrationRef, MigrationState, format_key, migration_key

logger = logging.getLogger("strata.migrations.executor")


@dataclass
class ExecutableMigration:
    """
    A migration resolved for execution: its key, operations and
    dependencies as ``(app, name)`` pairs.

    ``down_operations`` overrides the automatic reversal of ``operations``;
    an empty list marks the migration as not reversible.
    """

    app: str
    name: str
    operations: List[Operation] = field(default_factory=list)
    dependencies: List[MigrationKey] = field(default_factory=list)
    down_operations: Optional[List[Operation]] = None

    def __post_init__(self) -> None:
        self.operations = list(self.operations)
        self.dependencies = [migration_key(dep, self.app) for dep in self.dependencies]

    @classmethod
    def from_migration(cls, migration: Migration) -> ExecutableMigration:
        # An overridden down() is authoritative, even when it returns []
        overridden = type(migration).down is not Migration.down
        return cls(
            app=migration.app,
            name=migration.id,
            operations=migration.up(),
            dependencies=migration.dependency_keys(),
            down_operations=migration.down() if overridden else None,
        )

    def operation(self, op: Operation) -> ExecutableMigration:
        self.operations.append(op)
        return self

    def depends_on(self, ref: MigrationRef, app: Optional[str] = None) -> ExecutableMigration:
        self.dependencies.append(migration_key(ref, app or self.app))
        return self

    @property
    def key(self) -> MigrationKey:
        return (self.app, self.name)

    @property
    def id(self) -> str:
        return format_key(self.key)

    def reverse_operations(self) -> Optional[List[Operation]]:
        if self.down_operations is not None:
            return list(self.down_operations) or None
        return reverse_operations(self.operations)

    def is_reversible(self) -> bool:
        return self.reverse_operations() is not None


MigrationLike = Union[ExecutableMigration, Migration]


def as_executable(migration: MigrationLike) -> ExecutableMigration:
    if isinstance(migration, ExecutableMigration):
        return migration
    return ExecutableMigration.from_migration(migration)


class MigrationExecutor:
    """
    Runs migrations against a ``Database`` and keeps the history table
    in step.

    Args:
        db: connected (or connectable) ``Database``; may be None for a
            dry run with no history to consult.
        dialect: dialect name or instance used to render operations.
        dry_run: print statements instead of executing them.
        output: sink for dry-run statements (default ``sys.stdout``).
        atomic: wrap each migration and its history write in one
            transaction.
        history_table: name of the history table.
    """

    def __init__(
        self,
        db: Any,
        dialect: Union[MigrationDialect, str] = "sqlite",
        *,
        dry_run: bool = False,
        output: Optional[TextIO] = None,
        atomic: bool = False,
        history_table: str = DEFAULT_HISTORY_TABLE,
    ):
        self.db = db
        self.dialect = get_dialect(dialect)
        self.dry_run = dry_run
        self.output = output if output is not None else sys.stdout
        self.atomic = atomic
        self.history = MigrationHistory(db, self.dialect, history_table)
        self._simulated: Optional[MigrationState] = None

    async def init(self) -> None:
        """Create the history table (a no-op in dry-run mode)."""
        if not self.dry_run:
            await self.history.ensure_table()

    # ── State ────────────────────────────────────────────────────────

    async def _dry_state(self) -> MigrationState:
        if self._simulated is None:
            if self.db is not None:
                self._simulated = await self.history.load_state()
            else:
                self._simulated = MigrationState()
        return self._simulated

    async def is_applied(self, key: MigrationKey) -> bool:
        if self.dry_run:
            return (await self._dry_state()).is_applied(key)
        return await self.history.is_applied(*key)

    async def applied_state(self) -> MigrationState:
        """Applied migrations as a ``MigrationState``."""
        if self.dry_run:
            return (await self._dry_state()).copy()
        return await self.history.load_state()

    async def _mark(self, key: MigrationKey, applied: bool) -> None:
        if self.dry_run:
            state = await self._dry_state()
            if applied:
                state.mark_applied(key)
            else:
                state.mark_unapplied(key)
        elif applied:
            await self.history.record_applied(*key)
        else:
            await self.history.record_unapplied(*key)

    # ── Statement execution ──────────────────────────────────────────

    @asynccontextmanager
    async def _scope(self) -> AsyncIterator[None]:
        if self.atomic and not self.dry_run:
            async with self.db.transaction():
                yield
        else:
            yield

    async def _run_statements(self, statements: Sequence[str]) -> None:
        for sql in statements:
            logger.debug(f"SQL: {sql}")
            if self.dry_run:
                self.output.write(f"{sql};\n")
                continue
            if sql.lstrip().startswith("--"):
                logger.warning(f"Skipping unsupported operation: {sql}")
                continue
            await self.db.execute(sql)

    # ── Apply / rollback ─────────────────────────────────────────────

    async def apply(self, migration: MigrationLike) -> bool:
        """
        Apply one migration.

        Returns False when it was already applied and nothing ran.
        """
        m = as_executable(migration)
        logger.info(f"Applying migration {m.id}")

        if await self.is_applied(m.key):
            logger.warning(f"Migration {m.id} already applied, skipping")
            return False

        for dep in m.dependencies:
            if not await self.is_applied(dep):
                raise MissingDependencyFault(m.id, format_key(dep))

        async with self._scope():
            await self._run_statements(self.sql_for(m))
            await self._mark(m.key, True)

        logger.info(f"Migration {m.id} applied")
        return True

    async def rollback(self, migration: MigrationLike) -> bool:
        """
        Roll back one migration.

        Returns False when it was not applied and nothing ran.

        Raises:
            NotReversibleFault: its overridden ``down()`` is empty, or it has
                none and its operations cannot all be reversed
        """
        m = as_executable(migration)
        logger.info(f"Rolling back migration {m.id}")

        if not await self.is_applied(m.key):
            logger.warning(f"Migration {m.id} not applied, skipping rollback")
            return False

        statements = self.rollback_sql_for(m)
        if statements is None:
            raise NotReversibleFault(m.id)

        async with self._scope():
            await self._run_statements(statements)
            await self._mark(m.key, False)

        logger.info(f"Migration {m.id} rolled back")
        return True

    async def apply_all(self, migrations: Sequence[MigrationLike]) -> List[str]:
        """Apply in order; returns the ids that actually ran."""
        applied: List[str] = []
        for migration in migrations:
            m = as_executable(migration)
            if await self.apply(m):
                applied.append(m.id)
        return applied

    async def rollback_all(self, migrations: Sequence[MigrationLike]) -> List[str]:
        """Roll back in reverse order; returns the ids that actually ran."""
        rolled_back: List[str] = []
        for migration in reversed(list(migrations)):
            m = as_executable(migration)
            if await self.rollback(m):
                rolled_back.append(m.id)
        return rolled_back

    async def pending(self, migrations: Sequence[MigrationLike]) -> List[ExecutableMigration]:
        state = await self.applied_state()
        return [m for m in map(as_executable, migrations) if not state.is_applied(m.key)]

    # ── SQL rendering ────────────────────────────────────────────────

    def sql_for(self, migration: MigrationLike) -> List[str]:
        return self.dialect.generate_all(as_executable(migration).operations)

    def rollback_sql_for(self, migration: MigrationLike) -> Optional[List[str]]:
        """Statements undoing ``migration``, or None when it is not reversible."""
        operations = as_executable(migration).reverse_operations()
        if operations is None:
            return None
        return self.dialect.generate_all(operations)

    def __repr__(self) -> str:
        mode = "dry-run" if self.dry_run else "live"
        return f"MigrationExecutor(dialect={self.dialect.name!r}, {mode})"
