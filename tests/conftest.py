"""
Shared fixtures and helpers for the Strata test suite.
"""

import textwrap
from pathlib import Path
from typing import List, Optional

import pytest
import pytest_asyncio

from strata.db import Database
from strata.migrations import (
    AddColumn,
    C,
    CreateIndex,
    CreateTable,
    Migration,
)


# ============================================================================
# Migrations
# ============================================================================


def make_migration(
    migration_id: str,
    operations: Optional[list] = None,
    dependencies: Optional[list] = None,
    app: str = "default",
    down: Optional[list] = None,
) -> Migration:
    """
    Build a Migration instance without declaring a class per test.

    ``down`` is only overridden when given, so the default reversal of
    ``up()`` applies otherwise.
    """

    ops = list(operations or [])
    attrs = {"up": lambda self: list(ops)}
    if down is not None:
        down_ops = list(down)
        attrs["down"] = lambda self: list(down_ops)

    migration = type("_Inline", (Migration,), attrs)()
    migration.id = migration_id
    migration.app = app
    migration.dependencies = list(dependencies or [])
    return migration


def users_table() -> CreateTable:
    return CreateTable(
        "users",
        columns=[
            C.bigint("id").primary_key().autoincrement(),
            C.varchar("email", 255).not_null().unique(),
        ],
    )


@pytest.fixture
def chain() -> List[Migration]:
    """Three migrations, each depending on the previous one."""
    return [
        make_migration("0001_initial", [users_table()]),
        make_migration("0002_add_bio", [AddColumn("users", C.text("bio"))], ["0001_initial"]),
        make_migration(
            "0003_email_index",
            [CreateIndex("idx_users_email", "users", ["email"])],
            ["0002_add_bio"],
        ),
    ]


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'test.sqlite3'}"


@pytest_asyncio.fixture
async def db(db_url: str):
    database = Database(db_url)
    await database.connect()
    yield database
    await database.disconnect()


# ============================================================================
# Migration files
# ============================================================================


def write_file(path: Path, source: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
    return path
