"""Strata CLI - Main Entry Point.

Commands:
    init            - Create the migration history table
    migrate         - Apply (or roll back) migrations
    showmigrations  - List migrations and whether they are applied
    makemigrations  - Generate the next migration from a schema description
    sqlmigrate      - Print the SQL of one migration
"""

import logging
import sys
from typing import Optional

import click

from . import __version__, __cli_name__
from .utils.colors import error, _CROSS


class StrataGroup(click.Group):
    """Click group with aligned, coloured command listing."""

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd.get_short_help_str(limit=48)))

        if commands:
            with formatter.section(click.style("Commands", fg="cyan", bold=True)):
                width = max(len(name) for name, _ in commands) + 2
                for name, help_text in commands:
                    formatter.write(f"  {click.style(name.ljust(width), fg='green')} {help_text}\n")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def _config(ctx: click.Context, **overrides):
    """Resolve the layered configuration for the current invocation."""
    from ..config import ConfigLoader

    merged = dict(ctx.obj['overrides'])
    merged.update(overrides)
    return ConfigLoader.load(env_file=ctx.obj['env_file'], overrides=merged)


@click.group(cls=StrataGroup)
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--database', '-d', 'database_url', type=str, default=None,
              help='Database URL (default: STRATA_DATABASE_URL or sqlite:///db.sqlite3)')
@click.option('--migrations-dir', type=click.Path(file_okay=False), default=None,
              help='Directory holding migration files')
@click.option('--dialect', type=click.Choice(['sqlite', 'postgres', 'postgresql', 'duckdb']), default=None,
              help='SQL dialect (derived from the database URL when omitted)')
@click.option('--env-file', type=click.Path(dir_okay=False), default=None, help='Read settings from this .env file')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, database_url: Optional[str], migrations_dir: Optional[str], dialect: Optional[str],
        env_file: Optional[str], verbose: bool):
    """Schema migrations: generate, apply and roll back.

    \b
    Quick start:
      strata init
      strata makemigrations --schema myapp.schema:TABLES
      strata migrate
      strata showmigrations
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['env_file'] = env_file
    ctx.obj['overrides'] = {
        'database_url': database_url,
        'migrations_dir': migrations_dir,
        'dialect': dialect,
    }
    _configure_logging(verbose)


# ============================================================================
# Commands
# ============================================================================

@cli.command('init')
@click.pass_context
def init(ctx):
    """Create the migration history table."""
    from .commands.migrations import cmd_init

    try:
        cmd_init(_config(ctx))
    except Exception as e:
        error(f"  {_CROSS} init failed: {e}")
        sys.exit(1)


@cli.command('migrate')
@click.option('--app', type=str, default=None, help='Restrict to one app')
@click.option('--count', '-n', type=click.IntRange(min=1), default=None,
              help='How many migrations to apply (rollback default: 1)')
@click.option('--reverse', is_flag=True, help='Roll back the most recently applied migrations')
@click.option('--dry-run', is_flag=True, help='Print the SQL instead of executing it')
@click.option('--atomic/--no-atomic', default=None, help='Wrap each migration in a transaction')
@click.pass_context
def migrate(ctx, app: Optional[str], count: Optional[int], reverse: bool, dry_run: bool,
            atomic: Optional[bool]):
    """
    Apply pending migrations, or roll back applied ones.

    Examples:
      strata migrate
      strata migrate --dry-run
      strata migrate --count 1
      strata migrate --reverse --count 2
    """
    from .commands.migrations import cmd_migrate

    try:
        cmd_migrate(
            _config(ctx),
            app=app,
            count=count,
            reverse=reverse,
            dry_run=dry_run,
            atomic=atomic,
        )
    except Exception as e:
        error(f"  {_CROSS} migrate failed: {e}")
        sys.exit(1)


@cli.command('showmigrations')
@click.option('--app', type=str, default=None, help='Restrict to one app')
@click.pass_context
def showmigrations(ctx, app: Optional[str]):
    """
    List migrations and their status.

    Examples:
      strata showmigrations
      strata showmigrations --app blog
    """
    from .commands.migrations import cmd_showmigrations

    try:
        cmd_showmigrations(_config(ctx), app=app)
    except Exception as e:
        error(f"  {_CROSS} showmigrations failed: {e}")
        sys.exit(1)


@cli.command('makemigrations')
@click.option('--schema', type=str, default=None, help='Desired schema as module:attribute')
@click.option('--app', type=str, default=None, help='App the migration belongs to')
@click.option('--name', type=str, default=None, help='Migration name suffix')
@click.option('--empty', is_flag=True, help='Write an empty migration to fill in by hand')
@click.option('--dry-run', is_flag=True, help='Print the migration instead of writing it')
@click.option('--accept-renames/--reject-renames', default=None,
              help='Treat possible renames as renames, or as drop + add')
@click.pass_context
def makemigrations(ctx, schema: Optional[str], app: Optional[str], name: Optional[str], empty: bool,
                   dry_run: bool, accept_renames: Optional[bool]):
    """
    Generate the next migration from a schema description.

    Examples:
      strata makemigrations --schema myapp.schema:TABLES
      strata makemigrations --schema myapp.schema:TABLES --name add_bio
      strata makemigrations --empty --name backfill
    """
    from .commands.migrations import cmd_makemigrations

    try:
        cmd_makemigrations(
            _config(ctx),
            app=app,
            name=name,
            empty=empty,
            dry_run=dry_run,
            schema=schema,
            accept_renames=accept_renames,
        )
    except Exception as e:
        error(f"  {_CROSS} makemigrations failed: {e}")
        sys.exit(1)


@cli.command('sqlmigrate')
@click.argument('migration')
@click.option('--app', type=str, default=None, help='App the migration belongs to')
@click.option('--reverse', is_flag=True, help='Show the rollback SQL')
@click.pass_context
def sqlmigrate(ctx, migration: str, app: Optional[str], reverse: bool):
    """
    Print the SQL of one migration.

    MIGRATION is a migration id or a unique prefix of one.

    Examples:
      strata sqlmigrate 0001_initial
      strata sqlmigrate 0002 --reverse
    """
    from .commands.migrations import cmd_sqlmigrate

    try:
        cmd_sqlmigrate(_config(ctx), migration, app=app, reverse=reverse)
    except Exception as e:
        error(f"  {_CROSS} sqlmigrate failed: {e}")
        sys.exit(1)


def main():
    """Entry point for `strata` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
