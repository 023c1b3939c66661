"""
Strata Dialects — per-database SQL generation for migration operations.

    from strata.migrations.dialects import get_dialect

    dialect = get_dialect("postgresql")
    dialect.generate_sql(op)     # ['ALTER TABLE "users" ...']
"""

from __future__ import annotations

from typing import Dict, Type, Union

from ...faults import ConfigInvalidFault
from .base import MigrationDialect, strip_optional
from .duckdb import DuckDbDialect
from .postgres import PostgresDialect
from .sqlite import SqliteDialect

DIALECTS: Dict[str, Type[MigrationDialect]] = {
    "sqlite": SqliteDialect,
    "postgresql": PostgresDialect,
    "postgres": PostgresDialect,
    "duckdb": DuckDbDialect,
}


def get_dialect(dialect: Union[MigrationDialect, str]) -> MigrationDialect:
    """Resolve a dialect name (or pass an instance through)."""
    if isinstance(dialect, MigrationDialect):
        return dialect
    key = str(dialect).strip().lower()
    cls = DIALECTS.get(key)
    if cls is None:
        raise ConfigInvalidFault(
            "dialect",
            f"unknown dialect '{dialect}' (expected one of: sqlite, postgresql, duckdb)",
        )
    return cls()


__all__ = [
    "MigrationDialect",
    "SqliteDialect",
    "PostgresDialect",
    "DuckDbDialect",
    "DIALECTS",
    "get_dialect",
    "strip_optional",
]
