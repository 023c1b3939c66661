"""
Strata CLI.

The `strata` command drives the migration engine from the shell.

Usage:
    strata init
    strata makemigrations --schema myapp.schema:TABLES
    strata migrate
    strata migrate --reverse --count 2
    strata showmigrations
    strata sqlmigrate 0002
"""

__version__ = "0.1.0"
__cli_name__ = "strata"


def main():
    """Wrapper to avoid eager import of __main__ which causes warnings with -m."""
    from .__main__ import main as _main
    return _main()
