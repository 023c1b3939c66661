"""
Struct-level schema descriptions.

An application describes each record type as a ``TableSchema``: a plain,
explicitly passed value listing its fields with a host-language type string
(``"int"``, ``"Optional[str]"``, ``"datetime"``). A dialect resolves those
type strings to ``DataType`` values; nothing here inspects Python classes.

Usage:

    USERS = TableSchema("users", [
        FieldSchema("id", "int", primary_key=True, autoincrement=True),
        FieldSchema("email", "str", unique=True),
        FieldSchema("bio", "Optional[str]", nullable=True),
        FieldSchema("created_at", "datetime", default_expr="CURRENT_TIMESTAMP"),
    ])
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import TYPE_CHECKING, List, Optional

from .columns import ColumnDefinition
from .types import DefaultValue

if TYPE_CHECKING:
    from .dialects.base import MigrationDialect


@dataclass(frozen=True)
class FieldSchema:
    name: str
    type_name: str
    nullable: bool = False
    primary_key: bool = False
    unique: bool = False
    autoincrement: bool = False
    default_expr: Optional[str] = None

    def to_column(self, dialect: MigrationDialect) -> ColumnDefinition:
        """Resolve this field to a column through ``dialect``'s type map."""
        return ColumnDefinition(
            name=self.name,
            data_type=dialect.map_type(self.type_name),
            nullable=self.nullable,
            default=DefaultValue.expression(self.default_expr) if self.default_expr else None,
            primary_key=self.primary_key,
            unique=self.unique,
            autoincrement=self.autoincrement,
        )


@dataclass(frozen=True)
class TableSchema:
    name: str
    fields: List[FieldSchema] = dataclass_field(default_factory=list)

    def field(self, name: str) -> Optional[FieldSchema]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def primary_key(self) -> Optional[str]:
        for f in self.fields:
            if f.primary_key:
                return f.name
        return None
