"""
Strata CLI — output helpers.

    Output helpers:
        success(), error(), warning(), dim()

    Structure:
        section()       — section divider with title
        file_written()  — announce a generated file

All output goes through ``click.echo``; colour is dropped automatically on
non-terminals.
"""

from __future__ import annotations

import shutil
from typing import Optional

import click

_TERM_WIDTH: Optional[int] = None


def _tw() -> int:
    """Terminal width, cached and clamped to a sane range."""
    global _TERM_WIDTH
    if _TERM_WIDTH is None:
        _TERM_WIDTH = max(40, min(shutil.get_terminal_size((80, 24)).columns, 100))
    return _TERM_WIDTH


_L_H   = "\u2500"     # ─
_ARROW = "\u2192"     # →
_CHECK = "\u2713"     # ✓
_CROSS = "\u2717"     # ✗


def success(message: str) -> None:
    """Print success message in green."""
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    """Print error message in red."""
    click.echo(click.style(message, fg="red"))


def warning(message: str) -> None:
    """Print warning message in yellow."""
    click.echo(click.style(message, fg="yellow"))


def dim(message: str) -> None:
    """Print dimmed message."""
    click.echo(click.style(message, dim=True))


def section(title: str, *, width: Optional[int] = None, fg: str = "cyan") -> None:
    """
    Print a section header with a ruled line.

        ── default ─────────────────────────────────
    """
    w = width or _tw()
    dashes = max(4, w - len(title) - 6)
    click.echo(click.style(f"{_L_H}{_L_H} {title} {_L_H * dashes}", fg=fg, bold=True))


def file_written(label: str, *, path: str = "") -> None:
    """Announce a generated file."""
    click.echo(f"{click.style(f'  {_CHECK}', fg='green')} {label}")
    if path:
        dim(f"    {_ARROW} {path}")
