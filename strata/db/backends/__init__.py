"""
Strata DB Backends — adapters the ``Database`` engine delegates to.

Driver imports are deferred: ``aiosqlite`` and ``asyncpg`` are only needed
when a URL of their scheme is connected.
"""

from .base import DatabaseAdapter, AdapterCapabilities

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
]
