"""
DuckDB dialect.

DuckDB has no AUTOINCREMENT keyword or SERIAL type: every autoincrement
column gets its own sequence, created before the table, and a
``DEFAULT nextval('seq_<table>_<column>')``.
"""

from __future__ import annotations

from typing import List, Optional

from ..columns import ColumnDefinition
from ..operations import (
    AddColumn,
    AlterColumn,
    CreateTable,
    DropDefault,
    DropForeignKey,
    DropIndex,
    RenameColumn,
    RenameTable,
    SetAutoincrement,
    SetDataType,
    SetDefault,
    SetNullable,
    SetUnique,
)
from ..types import DataType, TypeKind, format_length
from .base import MigrationDialect


def sequence_name(table: str, column: str) -> str:
    return f"seq_{table}_{column}"


class DuckDbDialect(MigrationDialect):
    name = "duckdb"
    display_name = "DuckDB"

    type_map = {
        "bool": DataType.boolean(),
        "int": DataType.bigint(),
        "float": DataType.double(),
        "str": DataType.varchar(),
        "bytes": DataType.blob(),
        "datetime": DataType.timestamp(),
        "date": DataType.date(),
        "time": DataType.time(),
        "Decimal": DataType.decimal(),
        "UUID": DataType.custom("UUID"),
    }

    def map_data_type(self, data_type: DataType) -> str:
        kind = data_type.kind
        if kind in (TypeKind.BINARY, TypeKind.VARBINARY):
            return format_length("BLOB", data_type.length)
        if kind is TypeKind.DATETIME:
            return "TIMESTAMP"
        return data_type.to_sql()

    def create_table(self, op: CreateTable) -> List[str]:
        statements = [self._create_sequence(op.name, c.name) for c in op.columns if c.autoincrement]
        statements.append(self._create_table_statement(op))
        return statements

    def add_column(self, op: AddColumn) -> List[str]:
        statements = []
        if op.column.autoincrement:
            statements.append(self._create_sequence(op.table, op.column.name))
        statements.extend(super().add_column(op))
        return statements

    def _create_sequence(self, table: str, column: str) -> str:
        return f"CREATE SEQUENCE IF NOT EXISTS {self.quote_identifier(sequence_name(table, column))} START 1"

    def default_clause(self, col: ColumnDefinition, table: Optional[str]) -> str:
        if col.autoincrement and col.default is None and table is not None:
            return f" DEFAULT nextval('{sequence_name(table, col.name)}')"
        return super().default_clause(col, table)

    def collation_sql(self, collation: str) -> str:
        return self.quote_identifier(collation)

    def rename_table(self, op: RenameTable) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(op.old_name)} "
            f"RENAME TO {self.quote_identifier(op.new_name)}"
        )

    def rename_column(self, op: RenameColumn) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(op.table)} "
            f"RENAME COLUMN {self.quote_identifier(op.old_name)} "
            f"TO {self.quote_identifier(op.new_name)}"
        )

    def alter_column(self, op: AlterColumn) -> str:
        table = self.quote_identifier(op.table)
        column = self.quote_identifier(op.column)
        prefix = f"ALTER TABLE {table} ALTER COLUMN {column}"
        change = op.change

        if isinstance(change, SetDataType):
            return f"{prefix} SET DATA TYPE {self.map_data_type(change.data_type)}"
        if isinstance(change, SetNullable):
            return f"{prefix} DROP NOT NULL" if change.nullable else f"{prefix} SET NOT NULL"
        if isinstance(change, SetDefault):
            return f"{prefix} SET DEFAULT {self.render_default(change.default)}"
        if isinstance(change, DropDefault):
            return f"{prefix} DROP DEFAULT"
        if isinstance(change, SetUnique):
            if change.unique:
                return f"ALTER TABLE {table} ADD UNIQUE ({column})"
            constraint = self.quote_identifier(f"{op.table}_{op.column}_key")
            return f"ALTER TABLE {table} DROP CONSTRAINT {constraint}"
        if isinstance(change, SetAutoincrement):
            return (
                f"-- DuckDB cannot ALTER autoincrement for {op.table}.{op.column}; "
                "table recreation required"
            )
        raise TypeError(f"Unknown column change: {type(change).__name__}")

    def drop_index(self, op: DropIndex) -> str:
        sql = "DROP INDEX "
        if op.if_exists:
            sql += "IF EXISTS "
        return sql + self.quote_identifier(op.name)

    def drop_foreign_key(self, op: DropForeignKey) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(op.table)} "
            f"DROP CONSTRAINT {self.quote_identifier(op.name)}"
        )
