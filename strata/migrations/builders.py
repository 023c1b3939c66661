"""
Fluent builders for the table- and index-level operations.

    CreateTableBuilder("posts")
        .if_not_exists()
        .column(C.bigint("id").primary_key().autoincrement())
        .column(C.bigint("author_id").not_null())
        .foreign_key(["author_id"], "users", ["id"], on_delete="CASCADE")
        .build()

    CreateIndexBuilder("idx_posts_author", "posts").columns("author_id").build()
    DropTableBuilder("posts").if_exists().cascade().build()
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from .columns import ColumnDefinition, ColumnLike, as_column
from .operations import (
    CheckConstraint,
    CreateIndex,
    CreateTable,
    DropTable,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    TableConstraint,
    UniqueConstraint,
)
from .types import IndexType


class CreateTableBuilder:
    def __init__(self, name: str):
        self._name = name
        self._columns: List[ColumnDefinition] = []
        self._constraints: List[TableConstraint] = []
        self._if_not_exists = False

    def if_not_exists(self) -> CreateTableBuilder:
        self._if_not_exists = True
        return self

    def column(self, column: ColumnLike) -> CreateTableBuilder:
        self._columns.append(as_column(column))
        return self

    def columns(self, *columns: ColumnLike) -> CreateTableBuilder:
        for column in columns:
            self.column(column)
        return self

    def constraint(self, constraint: TableConstraint) -> CreateTableBuilder:
        self._constraints.append(constraint)
        return self

    def primary_key(self, columns: Sequence[str], name: Optional[str] = None) -> CreateTableBuilder:
        return self.constraint(PrimaryKeyConstraint(tuple(columns), name=name))

    def unique(self, columns: Sequence[str], name: Optional[str] = None) -> CreateTableBuilder:
        return self.constraint(UniqueConstraint(tuple(columns), name=name))

    def foreign_key(
        self,
        columns: Sequence[str],
        references_table: str,
        references_columns: Sequence[str],
        *,
        name: Optional[str] = None,
        on_delete: Any = None,
        on_update: Any = None,
    ) -> CreateTableBuilder:
        return self.constraint(
            ForeignKeyConstraint(
                tuple(columns),
                references_table,
                tuple(references_columns),
                on_delete=on_delete,
                on_update=on_update,
                name=name,
            )
        )

    def check(self, expression: str, name: Optional[str] = None) -> CreateTableBuilder:
        return self.constraint(CheckConstraint(expression, name=name))

    def build(self) -> CreateTable:
        if not self._columns:
            raise ValueError(f"Table '{self._name}' needs at least one column")
        return CreateTable(
            name=self._name,
            columns=list(self._columns),
            constraints=list(self._constraints),
            if_not_exists=self._if_not_exists,
        )


class DropTableBuilder:
    def __init__(self, name: str):
        self._name = name
        self._if_exists = False
        self._cascade = False

    def if_exists(self) -> DropTableBuilder:
        self._if_exists = True
        return self

    def cascade(self) -> DropTableBuilder:
        self._cascade = True
        return self

    def build(self) -> DropTable:
        return DropTable(self._name, if_exists=self._if_exists, cascade=self._cascade)


class CreateIndexBuilder:
    def __init__(self, name: str, table: str):
        self._name = name
        self._table = table
        self._columns: List[str] = []
        self._unique = False
        self._index_type = IndexType.BTREE
        self._if_not_exists = False
        self._condition: Optional[str] = None

    def columns(self, *columns: str) -> CreateIndexBuilder:
        self._columns.extend(columns)
        return self

    def unique(self) -> CreateIndexBuilder:
        self._unique = True
        return self

    def index_type(self, index_type: Any) -> CreateIndexBuilder:
        self._index_type = IndexType(index_type)
        return self

    def if_not_exists(self) -> CreateIndexBuilder:
        self._if_not_exists = True
        return self

    def where(self, condition: str) -> CreateIndexBuilder:
        self._condition = condition
        return self

    def build(self) -> CreateIndex:
        if not self._columns:
            raise ValueError(f"Index '{self._name}' needs at least one column")
        return CreateIndex(
            name=self._name,
            table=self._table,
            columns=list(self._columns),
            unique=self._unique,
            index_type=self._index_type,
            if_not_exists=self._if_not_exists,
            condition=self._condition,
        )
