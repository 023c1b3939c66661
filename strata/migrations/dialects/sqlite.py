"""
SQLite dialect.

SQLite stores values in five storage classes, so every abstract type
collapses to INTEGER, REAL, TEXT or BLOB. It has no ALTER COLUMN and no
ADD/DROP CONSTRAINT: those changes degrade to explanatory comments.
AUTOINCREMENT is only accepted on an INTEGER PRIMARY KEY.
"""

from __future__ import annotations

from ..columns import ColumnDefinition
from ..operations import (
    AddForeignKey,
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
from ..types import DataType, DefaultKind, DefaultValue, TypeKind
from .base import MigrationDialect

_STORAGE_CLASSES = {
    TypeKind.SMALLINT: "INTEGER",
    TypeKind.INTEGER: "INTEGER",
    TypeKind.BIGINT: "INTEGER",
    TypeKind.BOOLEAN: "INTEGER",
    TypeKind.REAL: "REAL",
    TypeKind.DOUBLE: "REAL",
    TypeKind.DECIMAL: "REAL",
    TypeKind.NUMERIC: "REAL",
    TypeKind.CHAR: "TEXT",
    TypeKind.VARCHAR: "TEXT",
    TypeKind.TEXT: "TEXT",
    TypeKind.BLOB: "BLOB",
    TypeKind.BINARY: "BLOB",
    TypeKind.VARBINARY: "BLOB",
    TypeKind.DATE: "TEXT",
    TypeKind.TIME: "TEXT",
    TypeKind.TIMESTAMP: "TEXT",
    TypeKind.DATETIME: "TEXT",
}


class SqliteDialect(MigrationDialect):
    name = "sqlite"
    display_name = "SQLite"

    type_map = {
        "bool": DataType.integer(),
        "int": DataType.integer(),
        "float": DataType.real(),
        "str": DataType.text(),
        "bytes": DataType.blob(),
        "datetime": DataType.text(),
        "date": DataType.text(),
        "time": DataType.text(),
        "Decimal": DataType.real(),
    }

    def map_data_type(self, data_type: DataType) -> str:
        if data_type.kind is TypeKind.CUSTOM:
            return data_type.name or ""
        return _STORAGE_CLASSES[data_type.kind]

    def autoincrement_keyword(self) -> str:
        return " AUTOINCREMENT"

    def supports_autoincrement(self, col: ColumnDefinition) -> bool:
        return col.primary_key and self.column_type_sql(col) == "INTEGER"

    def render_default(self, default: DefaultValue) -> str:
        # Booleans are stored as 0/1
        if default.kind is DefaultKind.BOOLEAN:
            return "1" if default.value else "0"
        return default.to_sql()

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
        target = f"{op.table}.{op.column}"
        change = op.change
        if isinstance(change, SetDataType):
            what = "ALTER COLUMN TYPE directly"
        elif isinstance(change, SetNullable):
            what = "ALTER COLUMN NULL/NOT NULL directly"
        elif isinstance(change, SetDefault):
            return (
                f"-- SQLite does not support ALTER COLUMN SET DEFAULT directly for {target}; "
                f"would set to: {self.render_default(change.default)}"
            )
        elif isinstance(change, DropDefault):
            what = "ALTER COLUMN DROP DEFAULT directly"
        elif isinstance(change, SetUnique):
            what = "ALTER COLUMN UNIQUE directly"
        elif isinstance(change, SetAutoincrement):
            what = "ALTER autoincrement"
        else:
            raise TypeError(f"Unknown column change: {type(change).__name__}")
        return f"-- SQLite does not support {what} for {target}; table recreation required"

    def drop_index(self, op: DropIndex) -> str:
        sql = "DROP INDEX "
        if op.if_exists:
            sql += "IF EXISTS "
        return sql + self.quote_identifier(op.name)

    def drop_foreign_key(self, op: DropForeignKey) -> str:
        return (
            "-- SQLite does not support DROP CONSTRAINT; "
            f"table recreation required to remove foreign key {op.name} from {op.table}"
        )

    def add_foreign_key(self, op: AddForeignKey) -> str:
        name = op.name or f"({', '.join(op.columns)})"
        return (
            "-- SQLite does not support ADD CONSTRAINT; "
            f"table recreation required to add foreign key {name} to {op.table}"
        )
