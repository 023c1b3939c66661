"""
Strata Migrations — schema modelling, diffing, SQL generation and execution.

Usage:
    from strata.migrations import Migration, CreateTable, AddColumn, C

    class Migration0001Initial(Migration):
        id = "0001_initial"

        def up(self):
            return [
                CreateTable("users", columns=[
                    C.bigint("id").primary_key().autoincrement(),
                    C.varchar("email", 255).not_null().unique(),
                ]),
            ]

Public API:
    - Types & columns: DataType, DefaultValue, ForeignKeyAction, IndexType, C
    - Operations: CreateTable, AddColumn, AlterColumn, RunSql, ...
    - Dialects: SqliteDialect, PostgresDialect, DuckDbDialect, get_dialect
    - Snapshots & diff: SchemaSnapshot, diff_schema, SchemaDiff
    - Runner: Migration, MigrationRunner, MigrationState
    - Execution: MigrationHistory, MigrationExecutor, ExecutableMigration
    - Files: load_migrations, render_migration, write_migration
"""

# ── Types & columns ─────────────────────────────────────────────────────────

from .types import (
    DataType,
    TypeKind,
    DefaultValue,
    DefaultKind,
    ForeignKeyAction,
    IndexType,
)

from .columns import (
    ColumnDefinition,
    ColumnBuilder,
    ForeignKeyRef,
    C,
    columns,
)

# ── Operations ──────────────────────────────────────────────────────────────

from .operations import (
    Operation,
    CreateTable,
    DropTable,
    RenameTable,
    AddColumn,
    DropColumn,
    AlterColumn,
    RenameColumn,
    CreateIndex,
    DropIndex,
    AddForeignKey,
    DropForeignKey,
    RunSql,
    AlterColumnChange,
    SetDataType,
    SetNullable,
    SetDefault,
    DropDefault,
    SetUnique,
    SetAutoincrement,
    TableConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
    ForeignKeyConstraint,
    CheckConstraint,
    reverse_operations,
)

from .builders import CreateTableBuilder, DropTableBuilder, CreateIndexBuilder
from .schema import FieldSchema, TableSchema

# ── Dialects ────────────────────────────────────────────────────────────────

from .dialects import (
    MigrationDialect,
    SqliteDialect,
    PostgresDialect,
    DuckDbDialect,
    get_dialect,
)

# ── Snapshots & diff ────────────────────────────────────────────────────────

from .snapshot import (
    ColumnSnapshot,
    IndexSnapshot,
    ForeignKeySnapshot,
    TableSnapshot,
    SchemaSnapshot,
    SchemaIntrospector,
    save_snapshot,
    load_snapshot,
)

from .diff import (
    SchemaDiff,
    AmbiguousChange,
    PossibleRename,
    PossibleTableRename,
    PrimaryKeyChange,
    AutoincrementChange,
    ColumnOrderChanged,
    UnnamedForeignKeyRemoved,
    diff_table,
    diff_schema,
    auto_diff_table,
)

# ── Runner, state & execution ───────────────────────────────────────────────

from .state import DEFAULT_APP, MigrationState, migration_key
from .migration import Migration, MigrationRunner, MigrationStatus
from .replay import SchemaState
from .history import MigrationHistory, AppliedMigration
from .executor import MigrationExecutor, ExecutableMigration

# ── Files ───────────────────────────────────────────────────────────────────

from .loader import load_migrations, load_migration_file
from .codegen import render_migration, write_migration, next_migration_id, id_to_class_name

__all__ = [
    # Types & columns
    "DataType", "TypeKind", "DefaultValue", "DefaultKind", "ForeignKeyAction", "IndexType",
    "ColumnDefinition", "ColumnBuilder", "ForeignKeyRef", "C", "columns",
    # Operations
    "Operation", "CreateTable", "DropTable", "RenameTable", "AddColumn", "DropColumn",
    "AlterColumn", "RenameColumn", "CreateIndex", "DropIndex", "AddForeignKey",
    "DropForeignKey", "RunSql", "reverse_operations",
    "AlterColumnChange", "SetDataType", "SetNullable", "SetDefault", "DropDefault",
    "SetUnique", "SetAutoincrement",
    "TableConstraint", "PrimaryKeyConstraint", "UniqueConstraint",
    "ForeignKeyConstraint", "CheckConstraint",
    "CreateTableBuilder", "DropTableBuilder", "CreateIndexBuilder",
    "FieldSchema", "TableSchema",
    # Dialects
    "MigrationDialect", "SqliteDialect", "PostgresDialect", "DuckDbDialect", "get_dialect",
    # Snapshots & diff
    "ColumnSnapshot", "IndexSnapshot", "ForeignKeySnapshot", "TableSnapshot",
    "SchemaSnapshot", "SchemaIntrospector", "save_snapshot", "load_snapshot",
    "SchemaDiff", "AmbiguousChange", "PossibleRename", "PossibleTableRename",
    "PrimaryKeyChange", "AutoincrementChange", "ColumnOrderChanged",
    "UnnamedForeignKeyRemoved", "diff_table", "diff_schema", "auto_diff_table",
    # Runner, state & execution
    "DEFAULT_APP", "MigrationState", "migration_key",
    "Migration", "MigrationRunner", "MigrationStatus", "SchemaState",
    "MigrationHistory", "AppliedMigration", "MigrationExecutor", "ExecutableMigration",
    # Files
    "load_migrations", "load_migration_file",
    "render_migration", "write_migration", "next_migration_id", "id_to_class_name",
]
