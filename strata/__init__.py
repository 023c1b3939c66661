"""
Strata - schema migrations for async Python applications

Complete integration of:
- Migrations: column/operation model, dialect SQL generation, reversal
- Snapshots & diff: compare schemas and produce the operations between them
- Runner: dependency-ordered migrations with applied-state tracking
- Execution: async history table and executor over SQLite and PostgreSQL
- Faults: Structured error handling with fault domains
- CLI: init, makemigrations, migrate, showmigrations, sqlmigrate
"""

__version__ = "0.1.0"

# ============================================================================
# Configuration & faults
# ============================================================================

from .config import StrataConfig, ConfigLoader
from .faults import Fault, FaultDomain, Severity

# ============================================================================
# Database
# ============================================================================

from .db import Database

# ============================================================================
# Migrations
# ============================================================================

from .migrations import (
    C,
    CreateTable,
    DropTable,
    AddColumn,
    DropColumn,
    AlterColumn,
    RenameColumn,
    RenameTable,
    CreateIndex,
    DropIndex,
    RunSql,
    Migration,
    MigrationRunner,
    MigrationState,
    MigrationExecutor,
    MigrationHistory,
    SchemaSnapshot,
    TableSchema,
    FieldSchema,
    diff_schema,
    get_dialect,
)

__all__ = [
    "__version__",
    "StrataConfig",
    "ConfigLoader",
    "Fault",
    "FaultDomain",
    "Severity",
    "Database",
    "C",
    "CreateTable",
    "DropTable",
    "AddColumn",
    "DropColumn",
    "AlterColumn",
    "RenameColumn",
    "RenameTable",
    "CreateIndex",
    "DropIndex",
    "RunSql",
    "Migration",
    "MigrationRunner",
    "MigrationState",
    "MigrationExecutor",
    "MigrationHistory",
    "SchemaSnapshot",
    "TableSchema",
    "FieldSchema",
    "diff_schema",
    "get_dialect",
]
