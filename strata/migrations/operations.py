"""
Strata Operations — database-agnostic DDL changes.

Each operation is a plain value describing one schema change. Operations
never render SQL themselves: a ``MigrationDialect`` does that, so the same
operation list can be replayed against SQLite, PostgreSQL or DuckDB.

Operations:
    CreateTable      — Create a table with columns and table constraints
    DropTable        — Drop a table
    RenameTable      — Rename a table
    AddColumn        — Add a column
    DropColumn       — Drop a column
    AlterColumn      — Change one attribute of a column (AlterColumnChange)
    RenameColumn     — Rename a column
    CreateIndex      — Create an index
    DropIndex        — Drop an index
    AddForeignKey    — Add a foreign key constraint
    DropForeignKey   — Drop a named foreign key constraint
    RunSql           — Raw SQL with an optional reverse

Every operation exposes ``reverse()``, which returns ``None`` whenever the
reversal needs information the operation does not carry (a ``DropTable``
does not know the columns it destroyed).

Usage:

    from strata.migrations.operations import CreateTable, CreateIndex
    from strata.migrations.columns import C

    op = CreateTable(
        name="users",
        columns=[
            C.bigint("id").primary_key().autoincrement(),
            C.varchar("email", 255).not_null().unique(),
        ],
    )
    op.reverse()                 # DropTable(name='users', ...)
    op.to_sql("postgresql")      # ['CREATE TABLE "users" (...)']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Union

from .columns import ColumnDefinition, ColumnLike, as_column
from .types import DataType, DefaultValue, ForeignKeyAction, IndexType

if TYPE_CHECKING:
    from .dialects.base import MigrationDialect
    from .schema import TableSchema


# ── Alter column changes ────────────────────────────────────────────────────


class AlterColumnChange:
    """Base class for the single-attribute changes of ``AlterColumn``."""

    def describe(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class SetDataType(AlterColumnChange):
    data_type: DataType

    def describe(self) -> str:
        return f"type -> {self.data_type}"


@dataclass(frozen=True)
class SetNullable(AlterColumnChange):
    nullable: bool

    def describe(self) -> str:
        return "nullable" if self.nullable else "not null"


@dataclass(frozen=True)
class SetDefault(AlterColumnChange):
    default: DefaultValue

    def describe(self) -> str:
        return f"default -> {self.default.to_sql()}"


@dataclass(frozen=True)
class DropDefault(AlterColumnChange):
    def describe(self) -> str:
        return "drop default"


@dataclass(frozen=True)
class SetUnique(AlterColumnChange):
    unique: bool

    def describe(self) -> str:
        return "unique" if self.unique else "not unique"


@dataclass(frozen=True)
class SetAutoincrement(AlterColumnChange):
    autoincrement: bool

    def describe(self) -> str:
        return "autoincrement" if self.autoincrement else "no autoincrement"


# ── Table constraints ───────────────────────────────────────────────────────


class TableConstraint:
    """Base class for constraints declared in a CREATE TABLE body."""

    name: Optional[str] = None


@dataclass(frozen=True)
class PrimaryKeyConstraint(TableConstraint):
    columns: tuple
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))


@dataclass(frozen=True)
class UniqueConstraint(TableConstraint):
    columns: tuple
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))


@dataclass(frozen=True)
class ForeignKeyConstraint(TableConstraint):
    columns: tuple
    references_table: str
    references_columns: tuple
    on_delete: Optional[ForeignKeyAction] = None
    on_update: Optional[ForeignKeyAction] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "references_columns", tuple(self.references_columns))
        object.__setattr__(self, "on_delete", ForeignKeyAction.coerce(self.on_delete))
        object.__setattr__(self, "on_update", ForeignKeyAction.coerce(self.on_update))


@dataclass(frozen=True)
class CheckConstraint(TableConstraint):
    expression: str
    name: Optional[str] = None


# ── Operation Base ──────────────────────────────────────────────────────────


DialectLike = Union["MigrationDialect", str]


class Operation:
    """Base class for all migration operations."""

    def reverse(self) -> Optional[Operation]:
        """The operation undoing this one, or None if it cannot be derived."""
        return None

    def is_reversible(self) -> bool:
        return self.reverse() is not None

    def to_sql(self, dialect: DialectLike = "sqlite") -> List[str]:
        """Compile this operation to SQL statement(s) for ``dialect``."""
        from .dialects import get_dialect

        return get_dialect(dialect).generate_sql(self)

    def describe(self) -> str:
        """Human-readable description."""
        return type(self).__name__


# ── Tables ──────────────────────────────────────────────────────────────────


@dataclass
class CreateTable(Operation):
    """
    Create a table.

    ``columns`` accepts ``ColumnDefinition`` values or ``ColumnBuilder``
    chains; builders are resolved on construction.
    """

    name: str
    columns: List[ColumnDefinition] = field(default_factory=list)
    constraints: List[TableConstraint] = field(default_factory=list)
    if_not_exists: bool = False

    def __post_init__(self) -> None:
        self.columns = [as_column(c) for c in self.columns]
        self.constraints = list(self.constraints)

    @classmethod
    def from_table(cls, schema: TableSchema, dialect: DialectLike = "sqlite") -> CreateTable:
        """Build the CREATE TABLE for a struct-level table description."""
        from .dialects import get_dialect

        d = get_dialect(dialect)
        return cls(name=schema.name, columns=[f.to_column(d) for f in schema.fields])

    def reverse(self) -> Optional[Operation]:
        return DropTable(self.name)

    def describe(self) -> str:
        return f"Create table {self.name} ({len(self.columns)} columns)"


@dataclass
class DropTable(Operation):
    name: str
    if_exists: bool = False
    cascade: bool = False

    def describe(self) -> str:
        return f"Drop table {self.name}"


@dataclass
class RenameTable(Operation):
    old_name: str
    new_name: str

    def reverse(self) -> Optional[Operation]:
        return RenameTable(self.new_name, self.old_name)

    def describe(self) -> str:
        return f"Rename table {self.old_name} to {self.new_name}"


# ── Columns ─────────────────────────────────────────────────────────────────


@dataclass
class AddColumn(Operation):
    table: str
    column: ColumnDefinition

    def __post_init__(self) -> None:
        self.column = as_column(self.column)

    def reverse(self) -> Optional[Operation]:
        return DropColumn(self.table, self.column.name)

    def describe(self) -> str:
        return f"Add column {self.column.name} to {self.table}"


@dataclass
class DropColumn(Operation):
    table: str
    column: str

    def describe(self) -> str:
        return f"Drop column {self.column} from {self.table}"


@dataclass
class AlterColumn(Operation):
    """Change a single attribute of an existing column."""

    table: str
    column: str
    change: AlterColumnChange

    @classmethod
    def set_type(cls, table: str, column: str, data_type: DataType) -> AlterColumn:
        return cls(table, column, SetDataType(data_type))

    @classmethod
    def set_nullable(cls, table: str, column: str, nullable: bool) -> AlterColumn:
        return cls(table, column, SetNullable(nullable))

    @classmethod
    def set_default(cls, table: str, column: str, default: Any) -> AlterColumn:
        return cls(table, column, SetDefault(DefaultValue.from_python(default)))

    @classmethod
    def drop_default(cls, table: str, column: str) -> AlterColumn:
        return cls(table, column, DropDefault())

    def describe(self) -> str:
        return f"Alter column {self.table}.{self.column} ({self.change.describe()})"


@dataclass
class RenameColumn(Operation):
    table: str
    old_name: str
    new_name: str

    def reverse(self) -> Optional[Operation]:
        return RenameColumn(self.table, self.new_name, self.old_name)

    def describe(self) -> str:
        return f"Rename column {self.table}.{self.old_name} to {self.new_name}"


# ── Indexes ─────────────────────────────────────────────────────────────────


@dataclass
class CreateIndex(Operation):
    name: str
    table: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    index_type: IndexType = IndexType.BTREE
    if_not_exists: bool = False
    condition: Optional[str] = None

    def __post_init__(self) -> None:
        self.columns = list(self.columns)
        self.index_type = IndexType(self.index_type)

    def reverse(self) -> Optional[Operation]:
        return DropIndex(self.name, table=self.table)

    def describe(self) -> str:
        kind = "unique index" if self.unique else "index"
        return f"Create {kind} {self.name} on {self.table} ({', '.join(self.columns)})"


@dataclass
class DropIndex(Operation):
    name: str
    table: Optional[str] = None
    if_exists: bool = False

    def describe(self) -> str:
        return f"Drop index {self.name}"


# ── Foreign keys ────────────────────────────────────────────────────────────


@dataclass
class AddForeignKey(Operation):
    table: str
    columns: List[str]
    references_table: str
    references_columns: List[str]
    name: Optional[str] = None
    on_delete: Optional[ForeignKeyAction] = None
    on_update: Optional[ForeignKeyAction] = None

    def __post_init__(self) -> None:
        self.columns = list(self.columns)
        self.references_columns = list(self.references_columns)
        self.on_delete = ForeignKeyAction.coerce(self.on_delete)
        self.on_update = ForeignKeyAction.coerce(self.on_update)

    def reverse(self) -> Optional[Operation]:
        # An unnamed constraint cannot be addressed by DROP CONSTRAINT
        if self.name is None:
            return None
        return DropForeignKey(self.table, self.name)

    def describe(self) -> str:
        label = f" {self.name}" if self.name else ""
        return (
            f"Add foreign key{label} {self.table}({', '.join(self.columns)}) -> "
            f"{self.references_table}({', '.join(self.references_columns)})"
        )


@dataclass
class DropForeignKey(Operation):
    table: str
    name: str

    def describe(self) -> str:
        return f"Drop foreign key {self.name} from {self.table}"


# ── Raw SQL ─────────────────────────────────────────────────────────────────


@dataclass
class RunSql(Operation):
    """
    Raw SQL passthrough.

    Usage:
        RunSql("INSERT INTO config VALUES ('version', '2')",
               down_sql="DELETE FROM config WHERE key = 'version'")
    """

    up_sql: str
    down_sql: Optional[str] = None

    @classmethod
    def reversible(cls, up_sql: str, down_sql: str) -> RunSql:
        return cls(up_sql, down_sql)

    def reverse(self) -> Optional[Operation]:
        if self.down_sql is None:
            return None
        return RunSql(self.down_sql)

    def describe(self) -> str:
        first_line = self.up_sql.strip().splitlines()[0] if self.up_sql.strip() else ""
        return f"Run SQL: {first_line[:60]}"


def reverse_operations(operations: Sequence[Operation]) -> Optional[List[Operation]]:
    """
    Reverse a whole operation list.

    Returns the reversed operations in reverse order, or None if any single
    operation cannot be reversed.
    """
    reversed_ops: List[Operation] = []
    for op in reversed(list(operations)):
        rev = op.reverse()
        if rev is None:
            return None
        reversed_ops.append(rev)
    return reversed_ops
