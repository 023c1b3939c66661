"""
Strata Columns — column definitions and the fluent column builder.

Usage:

    from strata.migrations.columns import C

    C.bigint("id").primary_key().autoincrement()
    C.varchar("email", 255).not_null().unique()
    C.boolean("is_active").not_null().default_bool(True)
    C.bigint("user_id").references_on_delete("users", "id", "CASCADE")
    C.timestamp("created_at").not_null().default_expr("CURRENT_TIMESTAMP")

Builders are accepted anywhere a ``ColumnDefinition`` is expected; call
``.build()`` to obtain the definition explicitly.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Optional, Union

from .types import DataType, DefaultValue, ForeignKeyAction


# ── Column Definition ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ForeignKeyRef:
    """Inline ``REFERENCES table (column)`` clause of a column."""

    table: str
    column: str
    on_delete: Optional[ForeignKeyAction] = None
    on_update: Optional[ForeignKeyAction] = None


@dataclass
class ColumnDefinition:
    """
    A fully specified column.

    Columns are nullable unless told otherwise; a primary key is never
    nullable.
    """

    name: str
    data_type: DataType
    nullable: bool = True
    default: Optional[DefaultValue] = None
    primary_key: bool = False
    unique: bool = False
    autoincrement: bool = False
    references: Optional[ForeignKeyRef] = None
    check: Optional[str] = None
    collation: Optional[str] = None

    def __post_init__(self) -> None:
        if self.primary_key:
            self.nullable = False


# ── Column Builder ──────────────────────────────────────────────────────────


class ColumnBuilder:
    """Fluent builder producing a ``ColumnDefinition``."""

    def __init__(self, name: str, data_type: DataType):
        self._column = ColumnDefinition(name=name, data_type=data_type)

    def primary_key(self) -> ColumnBuilder:
        self._column.primary_key = True
        self._column.nullable = False
        return self

    def not_null(self) -> ColumnBuilder:
        self._column.nullable = False
        return self

    def nullable(self) -> ColumnBuilder:
        self._column.nullable = True
        return self

    def unique(self) -> ColumnBuilder:
        self._column.unique = True
        return self

    def autoincrement(self) -> ColumnBuilder:
        self._column.autoincrement = True
        return self

    def default(self, value: Any) -> ColumnBuilder:
        self._column.default = DefaultValue.from_python(value)
        return self

    def default_bool(self, value: bool) -> ColumnBuilder:
        self._column.default = DefaultValue.boolean(value)
        return self

    def default_int(self, value: int) -> ColumnBuilder:
        self._column.default = DefaultValue.integer(value)
        return self

    def default_float(self, value: float) -> ColumnBuilder:
        self._column.default = DefaultValue.float(value)
        return self

    def default_str(self, value: str) -> ColumnBuilder:
        self._column.default = DefaultValue.string(value)
        return self

    def default_null(self) -> ColumnBuilder:
        self._column.default = DefaultValue.null()
        return self

    def default_expr(self, sql: str) -> ColumnBuilder:
        self._column.default = DefaultValue.expression(sql)
        return self

    def references(self, table: str, column: str) -> ColumnBuilder:
        self._column.references = ForeignKeyRef(table, column)
        return self

    def references_on_delete(self, table: str, column: str, on_delete: Any) -> ColumnBuilder:
        self._column.references = ForeignKeyRef(table, column, ForeignKeyAction.coerce(on_delete))
        return self

    def references_full(
        self,
        table: str,
        column: str,
        on_delete: Any = None,
        on_update: Any = None,
    ) -> ColumnBuilder:
        self._column.references = ForeignKeyRef(
            table,
            column,
            ForeignKeyAction.coerce(on_delete),
            ForeignKeyAction.coerce(on_update),
        )
        return self

    def check(self, expression: str) -> ColumnBuilder:
        self._column.check = expression
        return self

    def collation(self, name: str) -> ColumnBuilder:
        self._column.collation = name
        return self

    def build(self) -> ColumnDefinition:
        # Builders may be reused as templates, so hand out a copy
        return copy.copy(self._column)

    def __repr__(self) -> str:
        return f"ColumnBuilder({self._column!r})"


ColumnLike = Union[ColumnDefinition, ColumnBuilder]


def as_column(column: ColumnLike) -> ColumnDefinition:
    """Normalize a builder or definition to a ``ColumnDefinition``."""
    if isinstance(column, ColumnBuilder):
        return column.build()
    if isinstance(column, ColumnDefinition):
        return column
    raise TypeError(f"Expected a column definition or builder, got {type(column).__name__}")


# ── Helper namespace (C) ────────────────────────────────────────────────────


class _ColumnHelpers:
    """
    Column helper namespace — ``columns`` (aliased as ``C``).

    Each helper returns a ``ColumnBuilder`` for the named type.
    """

    @staticmethod
    def column(name: str, data_type: DataType) -> ColumnBuilder:
        return ColumnBuilder(name, data_type)

    @staticmethod
    def smallint(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.smallint())

    @staticmethod
    def integer(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.integer())

    @staticmethod
    def bigint(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.bigint())

    @staticmethod
    def real(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.real())

    @staticmethod
    def double(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.double())

    @staticmethod
    def decimal(name: str, precision: Optional[int] = None, scale: Optional[int] = None) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.decimal(precision, scale))

    @staticmethod
    def numeric(name: str, precision: Optional[int] = None, scale: Optional[int] = None) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.numeric(precision, scale))

    @staticmethod
    def char(name: str, length: Optional[int] = None) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.char(length))

    @staticmethod
    def varchar(name: str, length: Optional[int] = None) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.varchar(length))

    @staticmethod
    def text(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.text())

    @staticmethod
    def blob(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.blob())

    @staticmethod
    def binary(name: str, length: Optional[int] = None) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.binary(length))

    @staticmethod
    def varbinary(name: str, length: Optional[int] = None) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.varbinary(length))

    @staticmethod
    def date(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.date())

    @staticmethod
    def time(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.time())

    @staticmethod
    def timestamp(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.timestamp())

    @staticmethod
    def datetime(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.datetime())

    @staticmethod
    def boolean(name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.boolean())

    @staticmethod
    def custom(name: str, type_name: str) -> ColumnBuilder:
        return ColumnBuilder(name, DataType.custom(type_name))


columns = _ColumnHelpers()
C = columns  # Short alias
