"""
PostgreSQL dialect.

Autoincrement integer columns become SMALLSERIAL / SERIAL / BIGSERIAL,
binary types map to BYTEA or BIT/VARBIT, and every ALTER COLUMN change has
a native form except autoincrement, which needs a sequence rewrite.
"""

from __future__ import annotations

from ..columns import ColumnDefinition
from ..operations import (
    AlterColumn,
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
from ..types import DataType, TypeKind, format_length, format_precision
from .base import MigrationDialect

_SERIAL_TYPES = {
    TypeKind.SMALLINT: "SMALLSERIAL",
    TypeKind.INTEGER: "SERIAL",
    TypeKind.BIGINT: "BIGSERIAL",
}


class PostgresDialect(MigrationDialect):
    name = "postgresql"
    display_name = "PostgreSQL"

    type_map = {
        "bool": DataType.boolean(),
        "int": DataType.bigint(),
        "float": DataType.double(),
        "str": DataType.text(),
        "bytes": DataType.blob(),
        "datetime": DataType.timestamp(),
        "date": DataType.date(),
        "time": DataType.time(),
        "Decimal": DataType.numeric(),
        "UUID": DataType.custom("UUID"),
    }

    def map_data_type(self, data_type: DataType) -> str:
        kind = data_type.kind
        if kind is TypeKind.DOUBLE:
            return "DOUBLE PRECISION"
        if kind is TypeKind.BLOB:
            return "BYTEA"
        if kind is TypeKind.BINARY:
            return format_length("BIT", data_type.length) if data_type.length is not None else "BYTEA"
        if kind is TypeKind.VARBINARY:
            return format_length("VARBIT", data_type.length) if data_type.length is not None else "BYTEA"
        if kind is TypeKind.DATETIME:
            return "TIMESTAMP"
        if kind in (TypeKind.DECIMAL, TypeKind.NUMERIC):
            return format_precision(kind.value.upper(), data_type.precision, data_type.scale)
        return data_type.to_sql()

    def column_type_sql(self, col: ColumnDefinition) -> str:
        if col.autoincrement and col.data_type.kind in _SERIAL_TYPES:
            return _SERIAL_TYPES[col.data_type.kind]
        return self.map_data_type(col.data_type)

    def supports_autoincrement(self, col: ColumnDefinition) -> bool:
        return col.data_type.kind in _SERIAL_TYPES

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
            return f"{prefix} TYPE {self.map_data_type(change.data_type)}"
        if isinstance(change, SetNullable):
            return f"{prefix} DROP NOT NULL" if change.nullable else f"{prefix} SET NOT NULL"
        if isinstance(change, SetDefault):
            return f"{prefix} SET DEFAULT {self.render_default(change.default)}"
        if isinstance(change, DropDefault):
            return f"{prefix} DROP DEFAULT"
        if isinstance(change, SetUnique):
            constraint = self.quote_identifier(self._unique_constraint_name(op.table, op.column))
            if change.unique:
                return f"ALTER TABLE {table} ADD CONSTRAINT {constraint} UNIQUE ({column})"
            return f"ALTER TABLE {table} DROP CONSTRAINT {constraint}"
        if isinstance(change, SetAutoincrement):
            return (
                f"-- PostgreSQL cannot ALTER autoincrement for {op.table}.{op.column}; "
                "table recreation required"
            )
        raise TypeError(f"Unknown column change: {type(change).__name__}")

    @staticmethod
    def _unique_constraint_name(table: str, column: str) -> str:
        # Matches the name PostgreSQL assigns to an inline UNIQUE
        return f"{table}_{column}_key"

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
