"""
Strata Dialects — base class for per-database DDL generation.

``MigrationDialect`` turns ``Operation`` values into literal SQL. The base
class implements operation dispatch and the DDL that is shared by every
supported database (CREATE TABLE, column definitions, table constraints,
CREATE INDEX, ADD FOREIGN KEY). Concrete dialects override only what
differs.

Statements a dialect genuinely cannot express inline are never dropped or
rewritten: they degrade to a ``-- ...`` SQL comment naming the table and
column and stating that table recreation is required. Executors skip such
comments; dry-run output shows them.

``generate_sql`` always returns a list of statements without a trailing
``;`` because some operations need more than one (DuckDB sequences).
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Sequence

from ..columns import ColumnDefinition, ForeignKeyRef
from ..operations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    CheckConstraint,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    ForeignKeyConstraint,
    Operation,
    PrimaryKeyConstraint,
    RenameColumn,
    RenameTable,
    RunSql,
    TableConstraint,
    UniqueConstraint,
)
from ..types import DataType, DefaultValue, ForeignKeyAction, IndexType

_OPTIONAL_RE = re.compile(r"^(?:typing\.)?Optional\[(.+)\]$")
_UNION_NONE_RE = re.compile(r"^(.+?)\s*\|\s*None$|^None\s*\|\s*(.+)$")


def strip_optional(type_name: str) -> str:
    """Strip ``Optional[...]`` / ``X | None`` and module prefixes from a type string."""
    text = type_name.strip()
    while True:
        m = _OPTIONAL_RE.match(text)
        if m:
            text = m.group(1).strip()
            continue
        m = _UNION_NONE_RE.match(text)
        if m:
            text = (m.group(1) or m.group(2)).strip()
            continue
        break
    # datetime.datetime -> datetime, decimal.Decimal -> Decimal
    if "[" not in text and "." in text:
        text = text.rsplit(".", 1)[1]
    return text


class MigrationDialect:
    """
    Base dialect.

    Subclasses must provide ``name``, ``map_data_type``, ``rename_table``,
    ``rename_column``, ``alter_column``, ``drop_index``,
    ``drop_foreign_key`` and a host type table (``type_map``).
    """

    name: str = "base"
    display_name: str = "base"

    # Host (Python annotation) type name -> DataType
    type_map: Dict[str, DataType] = {}
    fallback_type: DataType = DataType.text()

    # ── Dispatch ─────────────────────────────────────────────────────

    def generate_sql(self, operation: Operation) -> List[str]:
        """Render ``operation`` as one or more SQL statements."""
        handler = self._handlers().get(type(operation))
        if handler is None:
            raise TypeError(f"{self.name} dialect cannot render {type(operation).__name__}")
        return handler(operation)

    def generate_all(self, operations: Sequence[Operation]) -> List[str]:
        statements: List[str] = []
        for op in operations:
            statements.extend(self.generate_sql(op))
        return statements

    def _handlers(self) -> Dict[type, Callable[[Operation], List[str]]]:
        return {
            CreateTable: self.create_table,
            DropTable: lambda op: [self.drop_table(op)],
            RenameTable: lambda op: [self.rename_table(op)],
            AddColumn: self.add_column,
            DropColumn: lambda op: [self.drop_column(op)],
            AlterColumn: lambda op: [self.alter_column(op)],
            RenameColumn: lambda op: [self.rename_column(op)],
            CreateIndex: lambda op: [self.create_index(op)],
            DropIndex: lambda op: [self.drop_index(op)],
            AddForeignKey: lambda op: [self.add_foreign_key(op)],
            DropForeignKey: lambda op: [self.drop_foreign_key(op)],
            RunSql: lambda op: [op.up_sql],
        }

    # ── Tables ───────────────────────────────────────────────────────

    def create_table(self, op: CreateTable) -> List[str]:
        return [self._create_table_statement(op)] + self._autoincrement_notes(op.name, op.columns)

    def _create_table_statement(self, op: CreateTable) -> str:
        sql = "CREATE TABLE "
        if op.if_not_exists:
            sql += "IF NOT EXISTS "
        sql += self.quote_identifier(op.name) + " (\n"
        body = [f"    {self.column_definition(c, table=op.name)}" for c in op.columns]
        body.extend(f"    {self.table_constraint(c)}" for c in op.constraints)
        sql += ",\n".join(body)
        sql += "\n)"
        return sql

    def drop_table(self, op: DropTable) -> str:
        sql = "DROP TABLE "
        if op.if_exists:
            sql += "IF EXISTS "
        sql += self.quote_identifier(op.name)
        if op.cascade:
            sql += " CASCADE"
        return sql

    def rename_table(self, op: RenameTable) -> str:
        raise NotImplementedError

    # ── Columns ──────────────────────────────────────────────────────

    def add_column(self, op: AddColumn) -> List[str]:
        return [
            f"ALTER TABLE {self.quote_identifier(op.table)} "
            f"ADD COLUMN {self.column_definition(op.column, table=op.table)}"
        ] + self._autoincrement_notes(op.table, [op.column])

    def _autoincrement_notes(self, table: str, columns: Sequence[ColumnDefinition]) -> List[str]:
        # Columns rendered without their autoincrement get a comment statement
        return [
            f"-- {self.display_name} does not support autoincrement on {table}.{c.name}; "
            "column created without it, table recreation required"
            for c in columns
            if c.autoincrement and not self.supports_autoincrement(c)
        ]

    def drop_column(self, op: DropColumn) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(op.table)} "
            f"DROP COLUMN {self.quote_identifier(op.column)}"
        )

    def alter_column(self, op: AlterColumn) -> str:
        raise NotImplementedError

    def rename_column(self, op: RenameColumn) -> str:
        raise NotImplementedError

    # ── Indexes ──────────────────────────────────────────────────────

    def create_index(self, op: CreateIndex) -> str:
        sql = "CREATE "
        if op.unique:
            sql += "UNIQUE "
        sql += "INDEX "
        if op.if_not_exists:
            sql += "IF NOT EXISTS "
        sql += f"{self.quote_identifier(op.name)} ON {self.quote_identifier(op.table)}"
        if op.index_type is not IndexType.BTREE:
            sql += f" USING {self.index_type_sql(op.index_type)}"
        sql += f" ({self._column_list(op.columns)})"
        if op.condition:
            sql += f" WHERE {op.condition}"
        return sql

    def drop_index(self, op: DropIndex) -> str:
        raise NotImplementedError

    # ── Foreign keys ─────────────────────────────────────────────────

    def add_foreign_key(self, op: AddForeignKey) -> str:
        sql = f"ALTER TABLE {self.quote_identifier(op.table)} ADD "
        if op.name:
            sql += f"CONSTRAINT {self.quote_identifier(op.name)} "
        sql += (
            f"FOREIGN KEY ({self._column_list(op.columns)}) "
            f"REFERENCES {self.quote_identifier(op.references_table)} "
            f"({self._column_list(op.references_columns)})"
        )
        sql += self._referential_actions(op.on_delete, op.on_update)
        return sql

    def drop_foreign_key(self, op: DropForeignKey) -> str:
        raise NotImplementedError

    # ── Clause assembly ──────────────────────────────────────────────

    def column_definition(self, col: ColumnDefinition, table: Optional[str] = None) -> str:
        """
        Render one column of a CREATE TABLE / ADD COLUMN.

        ``table`` is only needed by dialects whose autoincrement strategy
        names per-table objects (DuckDB sequences).
        """
        sql = f"{self.quote_identifier(col.name)} {self.column_type_sql(col)}"
        if col.primary_key:
            sql += " PRIMARY KEY"
            if col.autoincrement and self.supports_autoincrement(col):
                sql += self.autoincrement_keyword()
        else:
            if not col.nullable:
                sql += " NOT NULL"
            if col.unique:
                sql += " UNIQUE"
        sql += self.default_clause(col, table)
        if col.references is not None:
            sql += self._references_clause(col.references)
        if col.check:
            sql += f" CHECK ({col.check})"
        if col.collation:
            sql += f" COLLATE {self.collation_sql(col.collation)}"
        return sql

    def column_type_sql(self, col: ColumnDefinition) -> str:
        return self.map_data_type(col.data_type)

    def default_clause(self, col: ColumnDefinition, table: Optional[str]) -> str:
        if col.default is None:
            return ""
        return f" DEFAULT {self.render_default(col.default)}"

    def collation_sql(self, collation: str) -> str:
        return collation

    def table_constraint(self, constraint: TableConstraint) -> str:
        sql = ""
        if constraint.name:
            sql = f"CONSTRAINT {self.quote_identifier(constraint.name)} "
        if isinstance(constraint, PrimaryKeyConstraint):
            return sql + f"PRIMARY KEY ({self._column_list(constraint.columns)})"
        if isinstance(constraint, UniqueConstraint):
            return sql + f"UNIQUE ({self._column_list(constraint.columns)})"
        if isinstance(constraint, ForeignKeyConstraint):
            sql += (
                f"FOREIGN KEY ({self._column_list(constraint.columns)}) "
                f"REFERENCES {self.quote_identifier(constraint.references_table)} "
                f"({self._column_list(constraint.references_columns)})"
            )
            return sql + self._referential_actions(constraint.on_delete, constraint.on_update)
        if isinstance(constraint, CheckConstraint):
            return sql + f"CHECK ({constraint.expression})"
        raise TypeError(f"Unknown table constraint: {type(constraint).__name__}")

    def _references_clause(self, ref: ForeignKeyRef) -> str:
        sql = f" REFERENCES {self.quote_identifier(ref.table)} ({self.quote_identifier(ref.column)})"
        return sql + self._referential_actions(ref.on_delete, ref.on_update)

    @staticmethod
    def _referential_actions(
        on_delete: Optional[ForeignKeyAction],
        on_update: Optional[ForeignKeyAction],
    ) -> str:
        sql = ""
        if on_delete is not None:
            sql += f" ON DELETE {on_delete.as_sql()}"
        if on_update is not None:
            sql += f" ON UPDATE {on_update.as_sql()}"
        return sql

    def _column_list(self, columns: Sequence[str]) -> str:
        return ", ".join(self.quote_identifier(c) for c in columns)

    # ── Types, defaults, identifiers ─────────────────────────────────

    def map_data_type(self, data_type: DataType) -> str:
        raise NotImplementedError

    def map_type(self, type_name: str) -> DataType:
        """Resolve a host-language type string (``"Optional[int]"``) to a DataType."""
        return self.type_map.get(strip_optional(type_name), self.fallback_type)

    def render_default(self, default: DefaultValue) -> str:
        return default.to_sql()

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def autoincrement_keyword(self) -> str:
        return ""

    def supports_autoincrement(self, col: ColumnDefinition) -> bool:
        """Whether ``col``'s autoincrement can be expressed in its definition."""
        return True

    def index_type_sql(self, index_type: IndexType) -> str:
        return IndexType(index_type).value

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
