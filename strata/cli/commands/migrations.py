"""
Migration commands — ``strata init / migrate / showmigrations /
makemigrations / sqlmigrate``.

Each ``cmd_*`` function takes the resolved ``StrataConfig`` plus the
command's own options, prints its report and returns a value the tests
can assert on. Faults propagate to the click layer, which reports them.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import click

from ...config import StrataConfig
from ...db import Database, detect_driver
from ...db.backends.sqlite import sqlite_path
from ...faults import (
    ConfigInvalidFault,
    MigrationFault,
    MigrationNotFoundFault,
    NotReversibleFault,
)
from ...migrations import (
    Migration,
    MigrationExecutor,
    MigrationRunner,
    MigrationState,
    MigrationStatus,
    SchemaDiff,
    SchemaSnapshot,
    SchemaState,
    TableSchema,
    TableSnapshot,
    diff_schema,
    load_migrations,
    render_migration,
    save_snapshot,
    write_migration,
    next_migration_id,
)
from ...migrations.executor import as_executable
from ...migrations.loader import app_directory
from ...migrations.state import format_key
from ..utils.colors import _CHECK, dim, file_written, section, success, warning

logger = logging.getLogger("strata.cli")

SNAPSHOT_FILE = "schema_snapshot.json"


# ── Shared helpers ──────────────────────────────────────────────────────────


def build_runner(config: StrataConfig, *, must_exist: bool = True) -> MigrationRunner:
    """Load every migration on disk into a validated runner."""
    runner = MigrationRunner(config.resolved_dialect)
    if must_exist or config.migrations_path.is_dir():
        runner.register_all(load_migrations(config.migrations_path, default_app=config.app))
    runner.validate()
    return runner


def _database_exists(url: str) -> bool:
    if detect_driver(url) != "sqlite":
        return True
    path = sqlite_path(url)
    return path == ":memory:" or Path(path).exists()


def open_database(config: StrataConfig, *, create: bool = True) -> Optional[Database]:
    """
    A ``Database`` for the configured URL.

    With ``create=False`` a SQLite file that does not exist yet yields None
    instead of being created.
    """
    if not create and not _database_exists(config.database_url):
        return None
    return Database(config.database_url)


async def _load_state(config: StrataConfig) -> MigrationState:
    db = open_database(config, create=False)
    if db is None:
        return MigrationState()
    async with db:
        executor = MigrationExecutor(db, config.resolved_dialect, history_table=config.history_table)
        return await executor.applied_state()


def find_migration(runner: MigrationRunner, name: str, app: str) -> Migration:
    """Resolve ``name`` (a full id or a unique prefix) within ``app``."""
    exact = runner.get(name, app)
    if exact is not None:
        return exact
    candidates = [m for m in runner.migrations if m.app == app and m.id.startswith(name)]
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise MigrationNotFoundFault(app, name)
    raise MigrationFault(
        code="MIGRATION_AMBIGUOUS",
        message=f"'{name}' matches several migrations: {', '.join(m.id for m in candidates)}",
    )


# ── init ────────────────────────────────────────────────────────────────────


def cmd_init(config: StrataConfig) -> None:
    """Create the history table."""

    async def _run() -> None:
        async with Database(config.database_url) as db:
            executor = MigrationExecutor(db, config.resolved_dialect, history_table=config.history_table)
            await executor.init()

    asyncio.run(_run())
    success(f"  {_CHECK} History table '{config.history_table}' ready")


# ── migrate ─────────────────────────────────────────────────────────────────


def _rollback_selection(
    runner: MigrationRunner,
    state: MigrationState,
    app: Optional[str],
    count: Optional[int],
) -> List[Migration]:
    applied = [m for m in reversed(runner.sorted_migrations()) if state.is_applied(m.key)]
    if app is not None:
        applied = [m for m in applied if m.app == app]
    selected = applied[: count if count is not None else 1]

    # All-or-nothing: refuse before anything runs
    for m in selected:
        if not as_executable(m).is_reversible():
            raise NotReversibleFault(m.label)

    chosen = {m.key for m in selected}
    for m in runner.migrations:
        if m.key in chosen or not state.is_applied(m.key):
            continue
        blocked = [format_key(dep) for dep in m.dependency_keys() if dep in chosen]
        if blocked:
            raise MigrationFault(
                code="MIGRATION_HAS_DEPENDENTS",
                message=f"Cannot roll back {', '.join(blocked)}: {m.label} depends on it and is applied",
                metadata={"dependent": m.label, "dependencies": blocked},
            )
    return selected


def cmd_migrate(
    config: StrataConfig,
    *,
    app: Optional[str] = None,
    count: Optional[int] = None,
    reverse: bool = False,
    dry_run: bool = False,
    atomic: Optional[bool] = None,
) -> List[str]:
    """
    Apply pending migrations (or roll back applied ones with ``reverse``).

    Returns:
        Ids (``app/name``) of the migrations applied or rolled back.
    """
    runner = build_runner(config)
    use_atomic = config.atomic if atomic is None else atomic

    async def _execute(db: Optional[Database]) -> List[str]:
        executor = MigrationExecutor(
            db,
            runner.dialect,
            dry_run=dry_run,
            output=sys.stdout,
            atomic=use_atomic,
            history_table=config.history_table,
        )
        await executor.init()
        state = await executor.applied_state()

        if reverse:
            selected = _rollback_selection(runner, state, app, count)
        else:
            selected = runner.pending_migrations(state)
            if app is not None:
                selected = [m for m in selected if m.app == app]
            if count is not None:
                selected = selected[:count]

        done: List[str] = []
        for migration in selected:
            if dry_run:
                click.echo(f"-- {migration.label}")
            ran = await (executor.rollback(migration) if reverse else executor.apply(migration))
            if ran:
                done.append(migration.label)
        return done

    async def _run() -> List[str]:
        db = open_database(config, create=not dry_run)
        if db is None:
            return await _execute(None)
        async with db:
            return await _execute(db)

    if dry_run:
        click.echo("-- Migration plan (dry-run)")
    done = asyncio.run(_run())

    if dry_run:
        return done
    action = "Rolled back" if reverse else "Applied"
    if done:
        success(f"  {_CHECK} {action} {len(done)} migration(s)")
        for label in done:
            dim(f"    {label}")
    else:
        warning("Nothing to roll back." if reverse else "No pending migrations.")
    return done


# ── showmigrations ──────────────────────────────────────────────────────────


def cmd_showmigrations(config: StrataConfig, *, app: Optional[str] = None) -> List[MigrationStatus]:
    """List migrations in execution order with their applied status."""
    runner = build_runner(config)
    state = asyncio.run(_load_state(config))

    statuses: List[MigrationStatus] = []
    for m in runner.sorted_migrations():
        if app is not None and m.app != app:
            continue
        statuses.append(
            MigrationStatus(id=m.id, app=m.app, applied=state.is_applied(m.key), applied_at=state.applied_at(m.key))
        )

    if not statuses:
        warning("  No migrations found.")
        return statuses

    apps = list(dict.fromkeys(s.app for s in statuses))
    for group in apps:
        section(group)
        for status in (s for s in statuses if s.app == group):
            _print_status(status)
    return statuses


def _print_status(status: MigrationStatus) -> None:
    if status.applied:
        when = f" ({status.applied_at:%Y-%m-%d %H:%M:%S})" if status.applied_at else ""
        click.echo(f" {click.style('[X]', fg='green')} {status.label}{when}")
    else:
        click.echo(f" {click.style('[ ]', fg='yellow')} {status.label}")


# ── makemigrations ──────────────────────────────────────────────────────────


def load_schema(reference: str, dialect: str) -> SchemaSnapshot:
    """
    Resolve ``module:attribute`` to a desired schema.

    The attribute may be a ``SchemaSnapshot``, an iterable of ``TableSchema``
    or ``TableSnapshot`` values, or a callable returning either.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigInvalidFault("schema", f"expected 'module:attribute', got {reference!r}")

    cwd = os.getcwd()
    added = cwd not in sys.path
    if added:
        sys.path.insert(0, cwd)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigInvalidFault("schema", f"cannot import {module_name}: {exc}") from exc
    finally:
        if added:
            sys.path.remove(cwd)

    value: Any = module
    for part in attr.split("."):
        try:
            value = getattr(value, part)
        except AttributeError as exc:
            raise ConfigInvalidFault("schema", f"{module_name} has no attribute {attr!r}") from exc
    if callable(value) and not isinstance(value, type):
        value = value()

    if isinstance(value, SchemaSnapshot):
        return value
    snapshot = SchemaSnapshot()
    for item in value:
        if isinstance(item, TableSchema):
            snapshot.add_from_table_schema(item, dialect)
        elif isinstance(item, TableSnapshot):
            snapshot.add_table(item)
        else:
            raise ConfigInvalidFault("schema", f"unsupported schema entry {type(item).__name__}")
    return snapshot


def _resolve_ambiguous(diff: SchemaDiff, accept_renames: Optional[bool]) -> SchemaDiff:
    if not diff.ambiguous:
        return diff
    if accept_renames is None:
        for change in diff.ambiguous:
            warning(f"  ? {change.describe()}")
        raise MigrationFault(
            code="AMBIGUOUS_CHANGES",
            message=(
                f"{len(diff.ambiguous)} possible rename(s) detected; "
                "rerun with --accept-renames or --reject-renames"
            ),
        )
    return diff.resolve(accept_renames)


def cmd_makemigrations(
    config: StrataConfig,
    *,
    app: Optional[str] = None,
    name: Optional[str] = None,
    empty: bool = False,
    dry_run: bool = False,
    schema: Optional[str] = None,
    accept_renames: Optional[bool] = None,
) -> Optional[Path]:
    """
    Write the next migration for the difference between the schema the
    existing migrations produce and the described schema.

    Returns:
        Path of the new migration file, or None (no changes / dry run).
    """
    app = app or config.app
    runner = build_runner(config, must_exist=False)
    ordered = runner.sorted_migrations()
    state = SchemaState.from_migrations(ordered)
    current = state.to_snapshot()

    if empty:
        diff = SchemaDiff()
    else:
        if not schema:
            raise ConfigInvalidFault("schema", "--schema module:attribute is required unless --empty is given")
        desired = load_schema(schema, runner.dialect.name)
        diff = _resolve_ambiguous(diff_schema(current, desired), accept_renames)
        if not diff.has_changes:
            warning("No changes detected.")
            return None

    # Fails early if the generated operations do not replay cleanly
    state.apply_operations(diff.operations)

    for w in diff.warnings:
        warning(f"  ! {w.describe()}")

    target_dir = app_directory(config.migrations_path, app, config.app)
    app_migrations = [m for m in ordered if m.app == app]
    dependencies = [app_migrations[-1].key] if app_migrations else []
    migration_id = next_migration_id(target_dir, name)
    source = render_migration(app, migration_id, diff, dependencies)

    if dry_run:
        click.echo(source)
        return None

    path = write_migration(target_dir, migration_id, source)
    save_snapshot(state.to_snapshot(), config.migrations_path / SNAPSHOT_FILE)
    file_written(f"{app}/{migration_id}", path=str(path))
    for op in diff.operations:
        dim(f"    - {op.describe()}")
    return path


# ── sqlmigrate ──────────────────────────────────────────────────────────────


def cmd_sqlmigrate(
    config: StrataConfig,
    migration_name: str,
    *,
    app: Optional[str] = None,
    reverse: bool = False,
) -> List[str]:
    """Print the SQL of one migration (or of its rollback)."""
    runner = build_runner(config)
    migration = find_migration(runner, migration_name, app or config.app)

    if reverse:
        operations = as_executable(migration).reverse_operations()
        if operations is None:
            raise NotReversibleFault(migration.label)
    else:
        operations = migration.up()

    statements = runner.dialect.generate_all(operations)
    direction = "rollback" if reverse else "apply"
    click.echo(f"-- {migration.label} ({direction}, {runner.dialect.name})")
    for sql in statements:
        click.echo(f"{sql};")
    return statements


__all__ = [
    "cmd_init",
    "cmd_migrate",
    "cmd_showmigrations",
    "cmd_makemigrations",
    "cmd_sqlmigrate",
]
