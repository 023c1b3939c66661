"""
Strata Schema Diff Engine — autodetect what changed between two snapshots.

    diff = diff_schema(current_snapshot, desired_snapshot)
    diff.operations      # ordered, ready to render
    diff.ambiguous       # possible renames awaiting a decision
    diff.warnings        # changes the engine will not emit automatically

Rename detection is deliberately narrow: a column rename is only suspected
when exactly one column disappears and exactly one appears in the same
table with the same data type (tables: exactly one dropped, one added, with
identical columns). Suspected renames are reported, never applied; call
``SchemaDiff.resolve(accept_renames)`` to turn them into operations.

The final operation list is stably ordered so new structures exist before
anything references them and old ones are torn down last:

    CreateTable, RenameTable, AddColumn/RenameColumn, DropForeignKey/DropIndex,
    CreateIndex/AddForeignKey, AlterColumn, DropColumn, DropTable, RunSql

New tables are created after the new tables their foreign keys reference.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

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
    Operation,
    RenameColumn,
    RenameTable,
    RunSql,
    SetDataType,
    SetDefault,
    SetNullable,
    SetUnique,
)
from .schema import TableSchema
from .snapshot import ColumnSnapshot, IndexSnapshot, SchemaSnapshot, TableSnapshot

logger = logging.getLogger("strata.migrations.diff")


# ── Ambiguous changes and warnings ──────────────────────────────────────────


@dataclass(frozen=True)
class PossibleRename:
    """One column dropped and one added with the same type: maybe a rename."""

    table: str
    old_column: str
    new_column: str
    accept_ops: Tuple[Operation, ...] = field(default=(), compare=False, repr=False)
    reject_ops: Tuple[Operation, ...] = field(default=(), compare=False, repr=False)

    def describe(self) -> str:
        return f"Column {self.table}.{self.old_column} may have been renamed to {self.new_column}"


@dataclass(frozen=True)
class PossibleTableRename:
    """One table dropped and one added with identical columns: maybe a rename."""

    old_table: str
    new_table: str
    accept_ops: Tuple[Operation, ...] = field(default=(), compare=False, repr=False)
    reject_ops: Tuple[Operation, ...] = field(default=(), compare=False, repr=False)

    def describe(self) -> str:
        return f"Table {self.old_table} may have been renamed to {self.new_table}"


AmbiguousChange = Union[PossibleRename, PossibleTableRename]


@dataclass(frozen=True)
class PrimaryKeyChange:
    table: str
    column: str
    new_value: bool

    def describe(self) -> str:
        state = "added to" if self.new_value else "removed from"
        return f"Primary key {state} {self.table}.{self.column}; table recreation required"


@dataclass(frozen=True)
class AutoincrementChange:
    table: str
    column: str
    new_value: bool

    def describe(self) -> str:
        state = "enabled" if self.new_value else "disabled"
        return f"Autoincrement {state} on {self.table}.{self.column}; table recreation required"


@dataclass(frozen=True)
class ColumnOrderChanged:
    table: str
    old_order: Tuple[str, ...]
    new_order: Tuple[str, ...]

    def describe(self) -> str:
        return f"Column order of {self.table} changed: {', '.join(self.new_order)}"


@dataclass(frozen=True)
class UnnamedForeignKeyRemoved:
    table: str
    columns: Tuple[str, ...]
    references_table: str

    def describe(self) -> str:
        return (
            f"Unnamed foreign key {self.table}({', '.join(self.columns)}) -> "
            f"{self.references_table} cannot be dropped by name"
        )


DiffWarning = Union[PrimaryKeyChange, AutoincrementChange, ColumnOrderChanged, UnnamedForeignKeyRemoved]


# ── Result ──────────────────────────────────────────────────────────────────


_OPERATION_RANK = {
    CreateTable: 0,
    RenameTable: 1,
    AddColumn: 2,
    RenameColumn: 2,
    DropForeignKey: 3,
    DropIndex: 3,
    CreateIndex: 4,
    AddForeignKey: 4,
    AlterColumn: 5,
    DropColumn: 6,
    DropTable: 7,
    RunSql: 8,
}


def order_operations(operations: Sequence[Operation]) -> List[Operation]:
    """Stable sort into dependency-safe order."""
    return sorted(operations, key=lambda op: _OPERATION_RANK.get(type(op), len(_OPERATION_RANK)))


@dataclass
class SchemaDiff:
    operations: List[Operation] = field(default_factory=list)
    ambiguous: List[AmbiguousChange] = field(default_factory=list)
    warnings: List[DiffWarning] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.operations or self.ambiguous or self.warnings)

    @property
    def has_changes(self) -> bool:
        return bool(self.operations or self.ambiguous)

    def to_sql(self, dialect: Any = "sqlite") -> List[str]:
        from .dialects import get_dialect

        return get_dialect(dialect).generate_all(self.operations)

    def reverse(self) -> Optional[SchemaDiff]:
        """The diff undoing this one, or None if any operation is irreversible."""
        reversed_ops: List[Operation] = []
        for op in reversed(self.operations):
            rev = op.reverse()
            if rev is None:
                return None
            reversed_ops.append(rev)
        return SchemaDiff(operations=reversed_ops)

    def is_reversible(self) -> bool:
        return all(op.is_reversible() for op in self.operations)

    def non_reversible_operations(self) -> List[Operation]:
        return [op for op in self.operations if not op.is_reversible()]

    def resolve(self, accept_renames: bool) -> SchemaDiff:
        """
        Settle every ambiguous change.

        Accepted renames become RenameColumn / RenameTable; rejected ones
        fall back to the drop + add pair the rename heuristic withheld.
        """
        operations = list(self.operations)
        for change in self.ambiguous:
            operations.extend(change.accept_ops if accept_renames else change.reject_ops)
        return SchemaDiff(
            operations=order_operations(operations),
            ambiguous=[],
            warnings=list(self.warnings),
        )

    def merge(self, other: SchemaDiff) -> None:
        self.operations.extend(other.operations)
        self.ambiguous.extend(other.ambiguous)
        self.warnings.extend(other.warnings)

    def summary(self) -> List[str]:
        lines = [op.describe() for op in self.operations]
        lines.extend(f"? {a.describe()}" for a in self.ambiguous)
        lines.extend(f"! {w.describe()}" for w in self.warnings)
        return lines


# ── Table-level diff ────────────────────────────────────────────────────────


def _column_changes(table: str, old: ColumnSnapshot, new: ColumnSnapshot) -> List[Operation]:
    """One AlterColumn per differing attribute, in a fixed order."""
    ops: List[Operation] = []
    name = new.name
    if old.data_type != new.data_type:
        ops.append(AlterColumn(table, name, SetDataType(new.data_type)))
    if old.nullable != new.nullable:
        ops.append(AlterColumn(table, name, SetNullable(new.nullable)))
    if old.unique != new.unique:
        ops.append(AlterColumn(table, name, SetUnique(new.unique)))
    if old.default != new.default:
        if new.default is None:
            ops.append(AlterColumn(table, name, DropDefault()))
        else:
            ops.append(AlterColumn(table, name, SetDefault(new.default)))
    return ops


def _column_warnings(table: str, old: ColumnSnapshot, new: ColumnSnapshot) -> List[DiffWarning]:
    warnings: List[DiffWarning] = []
    if old.primary_key != new.primary_key:
        warnings.append(PrimaryKeyChange(table, new.name, new.primary_key))
    if old.autoincrement != new.autoincrement:
        warnings.append(AutoincrementChange(table, new.name, new.autoincrement))
    return warnings


def _index_differs(a: IndexSnapshot, b: IndexSnapshot) -> bool:
    return (
        a.columns != b.columns
        or a.unique != b.unique
        or a.index_type != b.index_type
        or a.condition != b.condition
    )


def _create_index(table: str, idx: IndexSnapshot) -> CreateIndex:
    return CreateIndex(
        name=idx.name,
        table=table,
        columns=list(idx.columns),
        unique=idx.unique,
        index_type=idx.index_type,
        condition=idx.condition,
    )


def _diff_indexes(table: str, old: TableSnapshot, new: TableSnapshot) -> List[Operation]:
    ops: List[Operation] = []
    new_names = {i.name for i in new.indexes}
    for idx in old.indexes:
        if idx.name not in new_names:
            ops.append(DropIndex(idx.name, table=table))
    for idx in new.indexes:
        previous = old.index(idx.name)
        if previous is None:
            ops.append(_create_index(table, idx))
        elif _index_differs(previous, idx):
            ops.append(DropIndex(idx.name, table=table))
            ops.append(_create_index(table, idx))
    return ops


def _diff_foreign_keys(
    table: str, old: TableSnapshot, new: TableSnapshot
) -> Tuple[List[Operation], List[DiffWarning]]:
    ops: List[Operation] = []
    warnings: List[DiffWarning] = []
    for fk in old.foreign_keys:
        if any(fk.same_structure(n) for n in new.foreign_keys):
            continue
        if fk.name:
            ops.append(DropForeignKey(table, fk.name))
        else:
            warnings.append(UnnamedForeignKeyRemoved(table, tuple(fk.columns), fk.references_table))
    for fk in new.foreign_keys:
        if any(fk.same_structure(o) for o in old.foreign_keys):
            continue
        ops.append(
            AddForeignKey(
                table=table,
                columns=list(fk.columns),
                references_table=fk.references_table,
                references_columns=list(fk.references_columns),
                name=fk.name,
                on_delete=fk.on_delete,
                on_update=fk.on_update,
            )
        )
    return ops, warnings


def diff_table(current: TableSnapshot, desired: TableSnapshot) -> SchemaDiff:
    """Diff two versions of one table (named after ``desired``)."""
    table = desired.name
    old_names = set(current.column_names)
    new_names = set(desired.column_names)
    dropped = sorted(old_names - new_names)
    added = sorted(new_names - old_names)
    # Declaration order of the desired table
    common = [name for name in desired.column_names if name in old_names]

    result = SchemaDiff()

    if len(dropped) == 1 and len(added) == 1:
        old_col = current.column(dropped[0])
        new_col = desired.column(added[0])
        if old_col.data_type == new_col.data_type:
            renamed = replace(old_col, name=new_col.name)
            result.ambiguous.append(
                PossibleRename(
                    table=table,
                    old_column=old_col.name,
                    new_column=new_col.name,
                    accept_ops=tuple(
                        [RenameColumn(table, old_col.name, new_col.name)]
                        + _column_changes(table, renamed, new_col)
                    ),
                    reject_ops=(
                        AddColumn(table, new_col.to_definition()),
                        DropColumn(table, old_col.name),
                    ),
                )
            )
            dropped, added = [], []

    for name in added:
        result.operations.append(AddColumn(table, desired.column(name).to_definition()))

    for name in common:
        old_col = current.column(name)
        new_col = desired.column(name)
        result.operations.extend(_column_changes(table, old_col, new_col))
        result.warnings.extend(_column_warnings(table, old_col, new_col))

    for name in dropped:
        result.operations.append(DropColumn(table, name))

    result.operations.extend(_diff_indexes(table, current, desired))
    fk_ops, fk_warnings = _diff_foreign_keys(table, current, desired)
    result.operations.extend(fk_ops)
    result.warnings.extend(fk_warnings)

    old_order = tuple(n for n in current.column_names if n in new_names)
    new_order = tuple(common)
    if old_order != new_order:
        result.warnings.append(ColumnOrderChanged(table, old_order, new_order))

    result.operations = order_operations(result.operations)
    return result


# ── Schema-level diff ───────────────────────────────────────────────────────


def _create_table_ops(table: TableSnapshot) -> List[Operation]:
    ops: List[Operation] = [table.to_create_table()]
    ops.extend(_create_index(table.name, idx) for idx in table.indexes)
    return ops


def _same_columns(a: TableSnapshot, b: TableSnapshot) -> bool:
    return a.columns == b.columns


def _creation_order(tables: Sequence[TableSnapshot]) -> List[str]:
    """
    Names of new tables, each after the new tables its foreign keys reference.

    Ties break alphabetically; tables caught in a reference cycle keep
    alphabetical order at the end.
    """
    names = {t.name for t in tables}
    waiting: Dict[str, Set[str]] = {}
    dependents: Dict[str, List[str]] = {name: [] for name in names}
    for t in tables:
        refs = ({fk.references_table for fk in t.foreign_keys} & names) - {t.name}
        waiting[t.name] = refs
        for ref in refs:
            dependents[ref].append(t.name)

    ready = [name for name, refs in waiting.items() if not refs]
    heapq.heapify(ready)
    ordered: List[str] = []
    while ready:
        name = heapq.heappop(ready)
        ordered.append(name)
        for child in dependents[name]:
            waiting[child].discard(name)
            if not waiting[child]:
                heapq.heappush(ready, child)

    cyclic = sorted(names - set(ordered))
    if cyclic:
        logger.warning(f"Foreign keys between new tables form a cycle: {', '.join(cyclic)}")
    return ordered + cyclic


def diff_schema(current: SchemaSnapshot, desired: SchemaSnapshot) -> SchemaDiff:
    """Diff two whole schemas."""
    current_names = set(current.table_names())
    desired_names = set(desired.table_names())
    dropped = sorted(current_names - desired_names)
    added = sorted(desired_names - current_names)
    common = sorted(current_names & desired_names)

    result = SchemaDiff()

    if len(dropped) == 1 and len(added) == 1:
        old_table = current.table(dropped[0])
        new_table = desired.table(added[0])
        if _same_columns(old_table, new_table):
            moved = replace(old_table, name=new_table.name)
            result.ambiguous.append(
                PossibleTableRename(
                    old_table=old_table.name,
                    new_table=new_table.name,
                    accept_ops=tuple(
                        [RenameTable(old_table.name, new_table.name)]
                        + diff_table(moved, new_table).operations
                    ),
                    reject_ops=tuple(_create_table_ops(new_table) + [DropTable(old_table.name)]),
                )
            )
            dropped, added = [], []

    for name in _creation_order([desired.table(n) for n in added]):
        result.operations.extend(_create_table_ops(desired.table(name)))

    for name in common:
        result.merge(diff_table(current.table(name), desired.table(name)))

    for name in dropped:
        result.operations.append(DropTable(name))

    result.operations = order_operations(result.operations)
    logger.debug(
        f"Schema diff: {len(result.operations)} operations, "
        f"{len(result.ambiguous)} ambiguous, {len(result.warnings)} warnings"
    )
    return result


def auto_diff_table(
    current: Optional[TableSnapshot],
    schema: TableSchema,
    dialect: Any = "sqlite",
) -> SchemaDiff:
    """Diff a table as it exists (or None) against its struct-level description."""
    desired = TableSnapshot.from_table_schema(schema, dialect)
    if current is None:
        return SchemaDiff(operations=_create_table_ops(desired))
    return diff_table(current, desired)
