"""
Strata Migrations — migration units and the dependency-ordered runner.

A migration is a class with a stable ``id``, the ``app`` it belongs to,
the migrations it depends on, and ``up()`` / ``down()`` returning
operation lists:

    class Migration0002AddBio(Migration):
        id = "0002_add_bio"
        dependencies = ["0001_initial"]

        def up(self):
            return [AddColumn("users", C.text("bio"))]

        def down(self):
            return [DropColumn("users", "bio")]

``MigrationRunner`` holds the registered migrations, orders them with
Kahn's algorithm and renders the SQL still to run (or to roll back) for a
given ``MigrationState``. It never touches a database; see
``MigrationExecutor`` for that.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Type, Union

from ..faults import (
    CircularDependencyFault,
    MigrationFault,
    MissingDependencyFault,
    NotReversibleFault,
)
from .dialects import MigrationDialect, get_dialect
from .operations import Operation, reverse_operations
from .state import DEFAULT_APP, MigrationKey, MigrationRef, MigrationState, format_key, migration_key

logger = logging.getLogger("strata.migrations.runner")


class Migration:
    """
    Base class for author-written migrations.

    ``down()`` defaults to the reversal of ``up()``; when any operation in
    ``up()`` is irreversible it returns an empty list, which marks the
    migration as not reversible.
    """

    id: str = ""
    app: str = DEFAULT_APP
    dependencies: Sequence[MigrationRef] = ()

    def up(self) -> List[Operation]:
        raise NotImplementedError(f"{type(self).__name__}.up() is not implemented")

    def down(self) -> List[Operation]:
        return reverse_operations(self.up()) or []

    @property
    def key(self) -> MigrationKey:
        return (self.app, self.id)

    @property
    def label(self) -> str:
        return format_key(self.key)

    def dependency_keys(self) -> List[MigrationKey]:
        return [migration_key(dep, self.app) for dep in self.dependencies]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"


@dataclass
class MigrationStatus:
    id: str
    app: str
    applied: bool
    applied_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        return f"{self.app}/{self.id}"


class MigrationRunner:
    """
    Registry of migrations plus SQL generation in dependency order.

    Usage:
        runner = MigrationRunner("sqlite")
        runner.register(Migration0001Initial)
        runner.register(Migration0002AddBio)
        runner.validate()
        for migration_id, statements in runner.sql_for_pending(state):
            ...
    """

    def __init__(self, dialect: Union[MigrationDialect, str] = "sqlite"):
        self.dialect = get_dialect(dialect)
        self._migrations: List[Migration] = []
        self._by_key: Dict[MigrationKey, Migration] = {}

    def register(self, migration: Union[Migration, Type[Migration]]) -> MigrationRunner:
        if isinstance(migration, type):
            migration = migration()
        if not migration.id:
            raise MigrationFault(
                code="MIGRATION_INVALID",
                message=f"{type(migration).__name__} does not define an id",
            )
        if migration.key in self._by_key:
            raise MigrationFault(
                code="MIGRATION_DUPLICATE",
                message=f"Migration {migration.label} is registered twice",
                metadata={"migration": migration.label},
            )
        self._migrations.append(migration)
        self._by_key[migration.key] = migration
        return self

    def register_all(self, migrations: Sequence[Union[Migration, Type[Migration]]]) -> MigrationRunner:
        for migration in migrations:
            self.register(migration)
        return self

    @property
    def migrations(self) -> List[Migration]:
        return list(self._migrations)

    def get(self, ref: MigrationRef, app: Optional[str] = None) -> Optional[Migration]:
        return self._by_key.get(migration_key(ref, app))

    # ── Ordering ─────────────────────────────────────────────────────

    def validate(self) -> None:
        """Raise on unknown dependencies or dependency cycles."""
        self._check_dependencies()
        self.sorted_migrations()

    def _check_dependencies(self) -> None:
        for m in self._migrations:
            for dep in m.dependency_keys():
                if dep not in self._by_key:
                    raise MissingDependencyFault(m.label, format_key(dep))

    def sorted_migrations(self) -> List[Migration]:
        """
        Topological order (Kahn's algorithm).

        Among migrations that are ready at the same time, the one
        registered first comes first.
        """
        self._check_dependencies()

        position = {m.key: i for i, m in enumerate(self._migrations)}
        in_degree: Dict[MigrationKey, int] = {m.key: 0 for m in self._migrations}
        dependents: Dict[MigrationKey, List[MigrationKey]] = {m.key: [] for m in self._migrations}
        for m in self._migrations:
            for dep in set(m.dependency_keys()):
                in_degree[m.key] += 1
                dependents[dep].append(m.key)

        ready: List[Tuple[int, MigrationKey]] = [
            (position[key], key) for key, degree in in_degree.items() if degree == 0
        ]
        heapq.heapify(ready)
        ordered: List[Migration] = []

        while ready:
            _, key = heapq.heappop(ready)
            ordered.append(self._by_key[key])
            for child in dependents[key]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, (position[child], child))

        if len(ordered) != len(self._migrations):
            done = {m.key for m in ordered}
            remaining = [m.label for m in self._migrations if m.key not in done]
            raise CircularDependencyFault(remaining)
        return ordered

    # ── State queries ────────────────────────────────────────────────

    def pending_migrations(self, state: MigrationState) -> List[Migration]:
        return [m for m in self.sorted_migrations() if not state.is_applied(m.key)]

    def status(self, state: MigrationState) -> List[MigrationStatus]:
        return [
            MigrationStatus(
                id=m.id,
                app=m.app,
                applied=state.is_applied(m.key),
                applied_at=state.applied_at(m.key),
            )
            for m in self._migrations
        ]

    # ── SQL generation ───────────────────────────────────────────────

    def _render(self, operations: Sequence[Operation]) -> List[str]:
        return self.dialect.generate_all(operations)

    def sql_for_pending(self, state: MigrationState) -> List[Tuple[str, List[str]]]:
        """``(migration id, statements)`` for every unapplied migration, in order."""
        return [(m.id, self._render(m.up())) for m in self.pending_migrations(state)]

    def sql_for_rollback(self, state: MigrationState, count: int = 1) -> List[Tuple[str, List[str]]]:
        """
        ``(migration id, statements)`` undoing the last ``count`` applied
        migrations, most recent first.

        All-or-nothing: if any selected migration has no ``down()``
        operations the whole request fails with ``NotReversibleFault``.
        """
        if count < 0:
            raise MigrationFault(
                code="ROLLBACK_COUNT_INVALID",
                message=f"Cannot roll back a negative number of migrations ({count})",
                metadata={"count": count},
            )
        applied =[m for m in reversed(self.sorted_migrations()) if state.is_applied(m.key)]
        result: List[Tuple[str, List[str]]] = []
        for m in applied[:count]:
            operations = m.down()
            if not operations:
                raise NotReversibleFault(m.label)
            result.append((m.id, self._render(operations)))
        logger.debug(f"Rollback plan: {[mid for mid, _ in result]}")
        return result

    def __len__(self) -> int:
        return len(self._migrations)

    def __repr__(self) -> str:
        return f"MigrationRunner(dialect={self.dialect.name!r}, migrations={len(self)})"
