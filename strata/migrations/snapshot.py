"""
Strata Schema Snapshots.

A snapshot is a resolved, dialect-independent description of what a schema
looks like: tables, their columns (with abstract ``DataType`` values),
indexes and foreign keys. Snapshots are the input of the diff engine and
are obtained either from struct-level ``TableSchema`` descriptions, from
replaying migrations (``SchemaState.to_snapshot()``), or from an external
``SchemaIntrospector``.

Snapshots persist as JSON with a checksum:

    {
        "version": 1,
        "checksum": "<sha256 prefix>",
        "tables": {
            "users": {
                "name": "users",
                "columns": [{"name": "id", "data_type": {"kind": "bigint"}, ...}],
                "indexes": [...],
                "foreign_keys": [...]
            }
        }
    }
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union, runtime_checkable

from ..faults import SchemaMismatchFault
from .columns import ColumnDefinition
from .operations import CreateTable, ForeignKeyConstraint
from .schema import TableSchema
from .types import DataType, DefaultValue, ForeignKeyAction, IndexType

logger = logging.getLogger("strata.migrations.snapshot")

SNAPSHOT_VERSION = 1


def _action(value: Optional[ForeignKeyAction]) -> Optional[str]:
    return value.value if value is not None else None


# ── Snapshot values ─────────────────────────────────────────────────────────


@dataclass
class ColumnSnapshot:
    name: str
    data_type: DataType
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    autoincrement: bool = False
    default: Optional[DefaultValue] = None

    @classmethod
    def from_definition(cls, col: ColumnDefinition) -> ColumnSnapshot:
        return cls(
            name=col.name,
            data_type=col.data_type,
            nullable=col.nullable,
            primary_key=col.primary_key,
            unique=col.unique,
            autoincrement=col.autoincrement,
            default=col.default,
        )

    def to_definition(self) -> ColumnDefinition:
        return ColumnDefinition(
            name=self.name,
            data_type=self.data_type,
            nullable=self.nullable,
            default=self.default,
            primary_key=self.primary_key,
            unique=self.unique,
            autoincrement=self.autoincrement,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "data_type": self.data_type.to_dict(),
            "nullable": self.nullable,
            "primary_key": self.primary_key,
            "unique": self.unique,
            "autoincrement": self.autoincrement,
        }
        if self.default is not None:
            d["default"] = self.default.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ColumnSnapshot:
        default = data.get("default")
        return cls(
            name=data["name"],
            data_type=DataType.from_dict(data["data_type"]),
            nullable=data.get("nullable", True),
            primary_key=data.get("primary_key", False),
            unique=data.get("unique", False),
            autoincrement=data.get("autoincrement", False),
            default=DefaultValue.from_dict(default) if default is not None else None,
        )


@dataclass
class IndexSnapshot:
    name: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    index_type: IndexType = IndexType.BTREE
    condition: Optional[str] = None

    def __post_init__(self) -> None:
        self.columns = list(self.columns)
        self.index_type = IndexType(self.index_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "unique": self.unique,
            "index_type": self.index_type.value,
            "condition": self.condition,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> IndexSnapshot:
        return cls(
            name=data["name"],
            columns=data.get("columns", []),
            unique=data.get("unique", False),
            index_type=data.get("index_type", IndexType.BTREE.value),
            condition=data.get("condition"),
        )


@dataclass
class ForeignKeySnapshot:
    columns: List[str]
    references_table: str
    references_columns: List[str]
    on_delete: Optional[ForeignKeyAction] = None
    on_update: Optional[ForeignKeyAction] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        self.columns = list(self.columns)
        self.references_columns = list(self.references_columns)
        self.on_delete = ForeignKeyAction.coerce(self.on_delete)
        self.on_update = ForeignKeyAction.coerce(self.on_update)

    def same_structure(self, other: ForeignKeySnapshot) -> bool:
        """Equal ignoring the constraint name."""
        return (
            self.columns == other.columns
            and self.references_table == other.references_table
            and self.references_columns == other.references_columns
            and self.on_delete == other.on_delete
            and self.on_update == other.on_update
        )

    def to_constraint(self) -> ForeignKeyConstraint:
        return ForeignKeyConstraint(
            tuple(self.columns),
            self.references_table,
            tuple(self.references_columns),
            on_delete=self.on_delete,
            on_update=self.on_update,
            name=self.name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "references_table": self.references_table,
            "references_columns": list(self.references_columns),
            "on_delete": _action(self.on_delete),
            "on_update": _action(self.on_update),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ForeignKeySnapshot:
        return cls(
            columns=data["columns"],
            references_table=data["references_table"],
            references_columns=data["references_columns"],
            on_delete=data.get("on_delete"),
            on_update=data.get("on_update"),
            name=data.get("name"),
        )


@dataclass
class TableSnapshot:
    """One table: columns in declaration order, indexes and foreign keys."""

    name: str
    columns: List[ColumnSnapshot] = field(default_factory=list)
    indexes: List[IndexSnapshot] = field(default_factory=list)
    foreign_keys: List[ForeignKeySnapshot] = field(default_factory=list)

    @classmethod
    def from_table_schema(cls, schema: TableSchema, dialect: Any = "sqlite") -> TableSnapshot:
        """Resolve a struct-level description through ``dialect``'s type map."""
        from .dialects import get_dialect

        d = get_dialect(dialect)
        return cls(
            name=schema.name,
            columns=[ColumnSnapshot.from_definition(f.to_column(d)) for f in schema.fields],
        )

    def column(self, name: str) -> Optional[ColumnSnapshot]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def index(self, name: str) -> Optional[IndexSnapshot]:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        return None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def to_create_table(self) -> CreateTable:
        return CreateTable(
            name=self.name,
            columns=[c.to_definition() for c in self.columns],
            constraints=[fk.to_constraint() for fk in self.foreign_keys],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "indexes": [i.to_dict() for i in self.indexes],
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TableSnapshot:
        return cls(
            name=data["name"],
            columns=[ColumnSnapshot.from_dict(c) for c in data.get("columns", [])],
            indexes=[IndexSnapshot.from_dict(i) for i in data.get("indexes", [])],
            foreign_keys=[ForeignKeySnapshot.from_dict(f) for f in data.get("foreign_keys", [])],
        )


class SchemaSnapshot:
    """Tables keyed by name, always iterated in sorted order."""

    def __init__(self, tables: Optional[Iterable[TableSnapshot]] = None):
        self._tables: Dict[str, TableSnapshot] = {}
        for table in tables or ():
            self.add_table(table)

    @property
    def tables(self) -> Dict[str, TableSnapshot]:
        return {name: self._tables[name] for name in sorted(self._tables)}

    def add_table(self, table: TableSnapshot) -> None:
        self._tables[table.name] = table

    def add_from_table_schema(self, schema: TableSchema, dialect: Any = "sqlite") -> None:
        self.add_table(TableSnapshot.from_table_schema(schema, dialect))

    @classmethod
    def from_table_schemas(cls, schemas: Iterable[TableSchema], dialect: Any = "sqlite") -> SchemaSnapshot:
        snapshot = cls()
        for schema in schemas:
            snapshot.add_from_table_schema(schema, dialect)
        return snapshot

    def table(self, name: str) -> Optional[TableSnapshot]:
        return self._tables.get(name)

    def table_names(self) -> List[str]:
        return sorted(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SchemaSnapshot):
            return NotImplemented
        return self._tables == other._tables

    def __repr__(self) -> str:
        return f"SchemaSnapshot(tables={self.table_names()!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "tables": {name: t.to_dict() for name, t in self.tables.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SchemaSnapshot:
        return cls(TableSnapshot.from_dict(t) for t in data.get("tables", {}).values())


# ── Persistence ─────────────────────────────────────────────────────────────


def compute_checksum(data: Dict[str, Any]) -> str:
    """Stable checksum of a snapshot dict (excluding the checksum field)."""
    payload = {k: v for k, v in data.items() if k != "checksum"}
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def save_snapshot(snapshot: SchemaSnapshot, path: Union[str, Path]) -> Path:
    """Write ``snapshot`` to ``path`` as checksummed JSON."""
    path = Path(path)
    data = snapshot.to_dict()
    data["checksum"] = compute_checksum(data)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
    logger.info(f"Schema snapshot saved: {path}")
    return path


def load_snapshot(path: Union[str, Path]) -> Optional[SchemaSnapshot]:
    """
    Load a snapshot written by ``save_snapshot``.

    Returns None when the file does not exist or is not valid JSON; raises
    ``SchemaMismatchFault`` when its checksum does not match its contents.
    """
    path = Path(path)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning(f"Failed to load snapshot {path}: {exc}")
        return None

    stored = data.get("checksum")
    if stored is not None and stored != compute_checksum(data):
        raise SchemaMismatchFault(
            f"snapshot {path} was modified after it was written (checksum mismatch)",
            metadata={"path": str(path)},
        )
    if data.get("version", SNAPSHOT_VERSION) != SNAPSHOT_VERSION:
        raise SchemaMismatchFault(
            f"unsupported snapshot version {data.get('version')!r} in {path}",
            metadata={"path": str(path)},
        )
    return SchemaSnapshot.from_dict(data)


# ── Introspection boundary ──────────────────────────────────────────────────


@runtime_checkable
class SchemaIntrospector(Protocol):
    """Produces a snapshot of a live database; implemented outside the engine."""

    async def introspect(self) -> SchemaSnapshot:
        ...
