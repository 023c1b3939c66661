"""
Strata DB Backend — Base Adapter Interface.

``Database`` delegates every statement to an adapter chosen from the
connection URL. Adapters hide the differences the migration engine cares
about:
- Parameter placeholder style (?, $1)
- Transaction semantics
- Catalog lookups (does a table exist?)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger("strata.db.backends")

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
]


@dataclass
class AdapterCapabilities:
    """Describes what a specific backend supports."""

    transactional_ddl: bool = True
    param_style: str = "qmark"  # qmark (?) | numeric ($1)
    name: str = "base"


class DatabaseAdapter(ABC):
    """
    Abstract database adapter interface.

    SQL handed to an adapter uses ``?`` placeholders; adapters whose driver
    expects another style translate in ``adapt_sql``.
    """

    capabilities: AdapterCapabilities = AdapterCapabilities()

    @abstractmethod
    async def connect(self, url: str, **options) -> None:
        """Open a connection to the database."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the database connection."""
        ...

    @abstractmethod
    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute a SQL statement. Returns a cursor-like object."""
        ...

    @abstractmethod
    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute and return all rows as dicts."""
        ...

    @abstractmethod
    async def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute and return one row as dict, or None."""
        ...

    @abstractmethod
    async def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute and return a scalar value."""
        ...

    # ── Transaction management ───────────────────────────────────────

    @abstractmethod
    async def begin(self) -> None:
        """Start a transaction."""
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current transaction."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the current transaction."""
        ...

    # ── Catalog ──────────────────────────────────────────────────────

    @abstractmethod
    async def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        ...

    # ── SQL adaptation ───────────────────────────────────────────────

    def adapt_sql(self, sql: str) -> str:
        """
        Adapt SQL placeholders from qmark (?) to the backend's param style.

        Override this in backends that use a different param style.
        """
        return sql

    @property
    def is_connected(self) -> bool:
        """Check if the adapter is connected."""
        return False

    @property
    def dialect(self) -> str:
        """Return the SQL dialect name."""
        return self.capabilities.name
