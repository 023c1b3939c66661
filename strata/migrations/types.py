"""
Strata Types — the value types every migration operation is built from.

    DataType          — abstract SQL column type (rendered per dialect)
    DefaultValue      — a column DEFAULT (literal or raw SQL expression)
    ForeignKeyAction  — ON DELETE / ON UPDATE referential actions
    IndexType         — index access method (BTREE, HASH, GIST, GIN)

Usage:

    from strata.migrations.types import DataType, DefaultValue

    DataType.varchar(255).to_sql()           # 'VARCHAR(255)'
    DataType.decimal(10, 2).to_sql()         # 'DECIMAL(10, 2)'
    DefaultValue.string("it's").to_sql()     # "'it''s'"
    DefaultValue.expression("CURRENT_TIMESTAMP").to_sql()
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


# ── Data types ──────────────────────────────────────────────────────────────


class TypeKind(str, Enum):
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    REAL = "real"
    DOUBLE = "double"
    DECIMAL = "decimal"
    NUMERIC = "numeric"
    CHAR = "char"
    VARCHAR = "varchar"
    TEXT = "text"
    BLOB = "blob"
    BINARY = "binary"
    VARBINARY = "varbinary"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    CUSTOM = "custom"


_SIZED_KINDS = frozenset({TypeKind.CHAR, TypeKind.VARCHAR, TypeKind.BINARY, TypeKind.VARBINARY})
_PRECISION_KINDS = frozenset({TypeKind.DECIMAL, TypeKind.NUMERIC})


@dataclass(frozen=True)
class DataType:
    """
    An abstract SQL column type.

    Only the parameters meaningful for ``kind`` are set: ``length`` for the
    character and binary kinds, ``precision``/``scale`` for DECIMAL and
    NUMERIC, ``name`` for custom types. Two types are equal exactly when
    all of these match, which is what the diff engine relies on.
    """

    kind: TypeKind
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    name: Optional[str] = None

    # -- constructors ------------------------------------------------------

    @classmethod
    def smallint(cls) -> DataType:
        return cls(TypeKind.SMALLINT)

    @classmethod
    def integer(cls) -> DataType:
        return cls(TypeKind.INTEGER)

    @classmethod
    def bigint(cls) -> DataType:
        return cls(TypeKind.BIGINT)

    @classmethod
    def real(cls) -> DataType:
        return cls(TypeKind.REAL)

    @classmethod
    def double(cls) -> DataType:
        return cls(TypeKind.DOUBLE)

    @classmethod
    def decimal(cls, precision: Optional[int] = None, scale: Optional[int] = None) -> DataType:
        return cls(TypeKind.DECIMAL, precision=precision, scale=scale)

    @classmethod
    def numeric(cls, precision: Optional[int] = None, scale: Optional[int] = None) -> DataType:
        return cls(TypeKind.NUMERIC, precision=precision, scale=scale)

    @classmethod
    def char(cls, length: Optional[int] = None) -> DataType:
        return cls(TypeKind.CHAR, length=length)

    @classmethod
    def varchar(cls, length: Optional[int] = None) -> DataType:
        return cls(TypeKind.VARCHAR, length=length)

    @classmethod
    def text(cls) -> DataType:
        return cls(TypeKind.TEXT)

    @classmethod
    def blob(cls) -> DataType:
        return cls(TypeKind.BLOB)

    @classmethod
    def binary(cls, length: Optional[int] = None) -> DataType:
        return cls(TypeKind.BINARY, length=length)

    @classmethod
    def varbinary(cls, length: Optional[int] = None) -> DataType:
        return cls(TypeKind.VARBINARY, length=length)

    @classmethod
    def date(cls) -> DataType:
        return cls(TypeKind.DATE)

    @classmethod
    def time(cls) -> DataType:
        return cls(TypeKind.TIME)

    @classmethod
    def timestamp(cls) -> DataType:
        return cls(TypeKind.TIMESTAMP)

    @classmethod
    def datetime(cls) -> DataType:
        return cls(TypeKind.DATETIME)

    @classmethod
    def boolean(cls) -> DataType:
        return cls(TypeKind.BOOLEAN)

    @classmethod
    def custom(cls, name: str) -> DataType:
        return cls(TypeKind.CUSTOM, name=name)

    # -- rendering ---------------------------------------------------------

    def to_sql(self) -> str:
        """Generic SQL spelling; dialects override where they differ."""
        kind = self.kind
        if kind is TypeKind.CUSTOM:
            return self.name or ""
        base = kind.value.upper()
        if kind in _PRECISION_KINDS:
            return format_precision(base, self.precision, self.scale)
        if kind in _SIZED_KINDS:
            return format_length(base, self.length)
        return base

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind.value}
        for key in ("length", "precision", "scale", "name"):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DataType:
        return cls(
            kind=TypeKind(data["kind"]),
            length=data.get("length"),
            precision=data.get("precision"),
            scale=data.get("scale"),
            name=data.get("name"),
        )

    def __str__(self) -> str:
        return self.to_sql()


def format_length(base: str, length: Optional[int]) -> str:
    return f"{base}({length})" if length is not None else base


def format_precision(base: str, precision: Optional[int], scale: Optional[int]) -> str:
    if precision is not None and scale is not None:
        return f"{base}({precision}, {scale})"
    if precision is not None:
        return f"{base}({precision})"
    return base


# ── Default values ──────────────────────────────────────────────────────────


class DefaultKind(str, Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    EXPRESSION = "expression"


@dataclass(frozen=True)
class DefaultValue:
    """
    A column DEFAULT.

    ``expression`` values are raw SQL (``CURRENT_TIMESTAMP``,
    ``datetime('now')``) and are emitted verbatim; ``string`` values are
    quoted with embedded single quotes doubled.
    """

    kind: DefaultKind
    value: Any = None

    @classmethod
    def null(cls) -> DefaultValue:
        return cls(DefaultKind.NULL)

    @classmethod
    def boolean(cls, value: bool) -> DefaultValue:
        return cls(DefaultKind.BOOLEAN, bool(value))

    @classmethod
    def integer(cls, value: int) -> DefaultValue:
        return cls(DefaultKind.INTEGER, int(value))

    @classmethod
    def float(cls, value: float) -> DefaultValue:
        return cls(DefaultKind.FLOAT, float(value))

    @classmethod
    def string(cls, value: str) -> DefaultValue:
        return cls(DefaultKind.STRING, str(value))

    @classmethod
    def expression(cls, sql: str) -> DefaultValue:
        return cls(DefaultKind.EXPRESSION, str(sql))

    @classmethod
    def from_python(cls, value: Any) -> DefaultValue:
        """Map a Python literal to the matching default kind."""
        if isinstance(value, DefaultValue):
            return value
        if value is None:
            return cls.null()
        # bool first: bool is a subclass of int
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, int):
            return cls.integer(value)
        if isinstance(value, float):
            return cls.float(value)
        if isinstance(value, str):
            return cls.string(value)
        raise TypeError(f"Unsupported default value type: {type(value).__name__}")

    def to_sql(self) -> str:
        kind = self.kind
        if kind is DefaultKind.NULL:
            return "NULL"
        if kind is DefaultKind.BOOLEAN:
            return "TRUE" if self.value else "FALSE"
        if kind in (DefaultKind.INTEGER, DefaultKind.FLOAT):
            return str(self.value)
        if kind is DefaultKind.STRING:
            escaped = self.value.replace("'", "''")
            return f"'{escaped}'"
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind.value}
        if self.kind is not DefaultKind.NULL:
            d["value"] = self.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DefaultValue:
        return cls(DefaultKind(data["kind"]), data.get("value"))


# ── Referential actions and index methods ───────────────────────────────────


class ForeignKeyAction(str, Enum):
    NO_ACTION = "NO ACTION"
    RESTRICT = "RESTRICT"
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"

    def as_sql(self) -> str:
        return self.value

    @classmethod
    def coerce(cls, value: Any) -> Optional[ForeignKeyAction]:
        """Accept an enum member, its SQL spelling or its name."""
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().upper().replace("_", " ")
        return cls(text)


class IndexType(str, Enum):
    BTREE = "BTREE"
    HASH = "HASH"
    GIST = "GIST"
    GIN = "GIN"
