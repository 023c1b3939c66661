"""
Schema-state replay.

``SchemaState`` applies operations to an in-memory schema instead of a
database. Replaying every migration on disk yields the schema those
migrations produce, which ``makemigrations`` diffs against the desired
schema to write the next migration.

Replay is strict: an operation that does not fit the current state
(creating a table twice, altering a missing column, ...) raises
``InvalidStateFault`` instead of being skipped.
"""

from __future__ import annotations

import copy
import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..faults import InvalidStateFault
from .migration import Migration
from .operations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropDefault,
    DropForeignKey,
    DropIndex,
    DropTable,
    ForeignKeyConstraint,
    Operation,
    RenameColumn,
    RenameTable,
    RunSql,
    SetAutoincrement,
    SetDataType,
    SetDefault,
    SetNullable,
    SetUnique,
)
from .snapshot import ColumnSnapshot, ForeignKeySnapshot, IndexSnapshot, SchemaSnapshot, TableSnapshot

logger = logging.getLogger("strata.migrations.replay")


class SchemaState:
    """In-memory schema that operations are replayed against."""

    def __init__(self, snapshot: Optional[SchemaSnapshot] = None):
        self._tables: Dict[str, TableSnapshot] = {}
        if snapshot is not None:
            for name, table in snapshot.tables.items():
                self._tables[name] = copy.deepcopy(table)

    @classmethod
    def from_migrations(cls, migrations: Iterable[Migration]) -> SchemaState:
        state = cls()
        state.apply_migrations(migrations)
        return state

    # ── Queries ──────────────────────────────────────────────────────

    def has_table(self, name: str) -> bool:
        return name in self._tables

    def table(self, name: str) -> Optional[TableSnapshot]:
        return self._tables.get(name)

    def table_names(self) -> List[str]:
        return sorted(self._tables)

    def to_snapshot(self) -> SchemaSnapshot:
        return SchemaSnapshot(copy.deepcopy(t) for t in self._tables.values())

    # ── Replay ───────────────────────────────────────────────────────

    def apply_migrations(self, migrations: Iterable[Migration]) -> None:
        for migration in migrations:
            self.apply_migration(migration)

    def apply_migration(self, migration: Migration) -> None:
        for op in migration.up():
            self.apply_operation(op)
        logger.debug(f"Replayed {migration.label}")

    def apply_operations(self, operations: Iterable[Operation]) -> None:
        for op in operations:
            self.apply_operation(op)

    def apply_operation(self, op: Operation) -> None:
        handler = self._handlers().get(type(op))
        if handler is None:
            raise InvalidStateFault(f"cannot replay {type(op).__name__}")
        handler(op)

    def _handlers(self) -> Dict[type, Callable]:
        return {
            CreateTable: self._create_table,
            DropTable: self._drop_table,
            RenameTable: self._rename_table,
            AddColumn: self._add_column,
            DropColumn: self._drop_column,
            AlterColumn: self._alter_column,
            RenameColumn: self._rename_column,
            CreateIndex: self._create_index,
            DropIndex: self._drop_index,
            AddForeignKey: self._add_foreign_key,
            DropForeignKey: self._drop_foreign_key,
            RunSql: lambda op: None,
        }

    def _require_table(self, name: str) -> TableSnapshot:
        table = self._tables.get(name)
        if table is None:
            raise InvalidStateFault(f"table '{name}' does not exist")
        return table

    def _require_column(self, table: TableSnapshot, name: str) -> ColumnSnapshot:
        col = table.column(name)
        if col is None:
            raise InvalidStateFault(f"column '{table.name}.{name}' does not exist")
        return col

    # -- tables --

    def _create_table(self, op: CreateTable) -> None:
        if op.name in self._tables:
            if op.if_not_exists:
                return
            raise InvalidStateFault(f"table '{op.name}' already exists")
        self._tables[op.name] = TableSnapshot(
            name=op.name,
            columns=[ColumnSnapshot.from_definition(c) for c in op.columns],
            foreign_keys=[
                ForeignKeySnapshot(
                    columns=list(c.columns),
                    references_table=c.references_table,
                    references_columns=list(c.references_columns),
                    on_delete=c.on_delete,
                    on_update=c.on_update,
                    name=c.name,
                )
                for c in op.constraints
                if isinstance(c, ForeignKeyConstraint)
            ],
        )

    def _drop_table(self, op: DropTable) -> None:
        if op.name not in self._tables:
            if op.if_exists:
                return
            raise InvalidStateFault(f"table '{op.name}' does not exist")
        del self._tables[op.name]
        # Foreign keys into the dropped table go with it
        for other in self._tables.values():
            other.foreign_keys = [fk for fk in other.foreign_keys if fk.references_table != op.name]

    def _rename_table(self, op: RenameTable) -> None:
        table = self._require_table(op.old_name)
        if op.new_name in self._tables:
            raise InvalidStateFault(f"table '{op.new_name}' already exists")
        del self._tables[op.old_name]
        table.name = op.new_name
        self._tables[op.new_name] = table
        for other in self._tables.values():
            for fk in other.foreign_keys:
                if fk.references_table == op.old_name:
                    fk.references_table = op.new_name

    # -- columns --

    def _add_column(self, op: AddColumn) -> None:
        table = self._require_table(op.table)
        if table.column(op.column.name) is not None:
            raise InvalidStateFault(f"column '{op.table}.{op.column.name}' already exists")
        table.columns.append(ColumnSnapshot.from_definition(op.column))

    def _drop_column(self, op: DropColumn) -> None:
        table = self._require_table(op.table)
        col = self._require_column(table, op.column)
        table.columns.remove(col)
        # Indexes and foreign keys over the column are dropped with it
        table.indexes = [idx for idx in table.indexes if op.column not in idx.columns]
        table.foreign_keys = [fk for fk in table.foreign_keys if op.column not in fk.columns]
        for other in self._tables.values():
            other.foreign_keys = [
                fk
                for fk in other.foreign_keys
                if not (fk.references_table == op.table and op.column in fk.references_columns)
            ]

    def _alter_column(self, op: AlterColumn) -> None:
        col = self._require_column(self._require_table(op.table), op.column)
        change = op.change
        if isinstance(change, SetDataType):
            col.data_type = change.data_type
        elif isinstance(change, SetNullable):
            col.nullable = change.nullable
        elif isinstance(change, SetDefault):
            col.default = change.default
        elif isinstance(change, DropDefault):
            col.default = None
        elif isinstance(change, SetUnique):
            col.unique = change.unique
        elif isinstance(change, SetAutoincrement):
            col.autoincrement = change.autoincrement
        else:
            raise InvalidStateFault(f"unknown column change {type(change).__name__}")

    def _rename_column(self, op: RenameColumn) -> None:
        table = self._require_table(op.table)
        col = self._require_column(table, op.old_name)
        if table.column(op.new_name) is not None:
            raise InvalidStateFault(f"column '{op.table}.{op.new_name}' already exists")
        col.name = op.new_name

        def rename(names: List[str]) -> List[str]:
            return [op.new_name if n == op.old_name else n for n in names]

        for idx in table.indexes:
            idx.columns = rename(idx.columns)
        for fk in table.foreign_keys:
            fk.columns = rename(fk.columns)
        for other in self._tables.values():
            for fk in other.foreign_keys:
                if fk.references_table == op.table:
                    fk.references_columns = rename(fk.references_columns)

    # -- indexes --

    def _find_index(self, name: str, table: Optional[str]) -> Optional[TableSnapshot]:
        candidates = [self._require_table(table)] if table else list(self._tables.values())
        for t in candidates:
            if t.index(name) is not None:
                return t
        return None

    def _create_index(self, op: CreateIndex) -> None:
        table = self._require_table(op.table)
        if self._find_index(op.name, None) is not None:
            if op.if_not_exists:
                return
            raise InvalidStateFault(f"index '{op.name}' already exists")
        for name in op.columns:
            self._require_column(table, name)
        table.indexes.append(
            IndexSnapshot(
                name=op.name,
                columns=list(op.columns),
                unique=op.unique,
                index_type=op.index_type,
                condition=op.condition,
            )
        )

    def _drop_index(self, op: DropIndex) -> None:
        table = self._find_index(op.name, op.table)
        if table is None:
            if op.if_exists:
                return
            raise InvalidStateFault(f"index '{op.name}' does not exist")
        table.indexes.remove(table.index(op.name))

    # -- foreign keys --

    def _add_foreign_key(self, op: AddForeignKey) -> None:
        table = self._require_table(op.table)
        if op.name and any(fk.name == op.name for fk in table.foreign_keys):
            raise InvalidStateFault(f"foreign key '{op.name}' already exists on '{op.table}'")
        table.foreign_keys.append(
            ForeignKeySnapshot(
                columns=list(op.columns),
                references_table=op.references_table,
                references_columns=list(op.references_columns),
                on_delete=op.on_delete,
                on_update=op.on_update,
                name=op.name,
            )
        )

    def _drop_foreign_key(self, op: DropForeignKey) -> None:
        table = self._require_table(op.table)
        for fk in table.foreign_keys:
            if fk.name == op.name:
                table.foreign_keys.remove(fk)
                return
        raise InvalidStateFault(f"foreign key '{op.name}' does not exist on '{op.table}'")

    def __repr__(self) -> str:
        return f"SchemaState(tables={self.table_names()!r})"
