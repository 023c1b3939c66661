"""
Strata DB — async database access for the migration executor.

Usage:
    from strata.db import Database

    db = Database("sqlite:///app.db")
    await db.connect()
    await db.execute('CREATE TABLE "t" ("id" INTEGER)')
"""

from .engine import Database, detect_driver
from .backends import DatabaseAdapter, AdapterCapabilities

__all__ = [
    "Database",
    "detect_driver",
    "DatabaseAdapter",
    "AdapterCapabilities",
]
