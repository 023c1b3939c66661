"""
In-memory migration state: which migrations are applied, and when.

Migrations are identified by ``(app, name)``. Anywhere a migration is
named, a bare string means "this name in the default app" and a tuple
names the app explicitly:

    state = MigrationState.from_applied(["0001_initial", ("blog", "0001_posts")])
    state.is_applied("0001_initial")            # True
    state.is_applied("0001_posts", app="blog")  # True
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

DEFAULT_APP = "default"

MigrationKey = Tuple[str, str]
MigrationRef = Union[str, MigrationKey]


def migration_key(ref: MigrationRef, app: Optional[str] = None) -> MigrationKey:
    """Normalize a migration reference to ``(app, name)``."""
    if isinstance(ref, tuple):
        return (ref[0], ref[1])
    return (app or DEFAULT_APP, ref)


def format_key(key: MigrationKey) -> str:
    return f"{key[0]}/{key[1]}"


class MigrationState:
    """Applied migrations in the order they were applied."""

    def __init__(self) -> None:
        self._applied: Dict[MigrationKey, Optional[datetime]] = {}

    @classmethod
    def from_applied(cls, applied: Iterable[MigrationRef]) -> MigrationState:
        state = cls()
        for ref in applied:
            state.mark_applied(ref)
        return state

    def is_applied(self, ref: MigrationRef, app: Optional[str] = None) -> bool:
        return migration_key(ref, app) in self._applied

    def mark_applied(
        self,
        ref: MigrationRef,
        app: Optional[str] = None,
        applied_at: Optional[datetime] = None,
    ) -> None:
        self._applied[migration_key(ref, app)] = applied_at

    def mark_unapplied(self, ref: MigrationRef, app: Optional[str] = None) -> None:
        self._applied.pop(migration_key(ref, app), None)

    def applied_at(self, ref: MigrationRef, app: Optional[str] = None) -> Optional[datetime]:
        return self._applied.get(migration_key(ref, app))

    def applied_migrations(self) -> List[MigrationKey]:
        return list(self._applied)

    @property
    def applied_count(self) -> int:
        return len(self._applied)

    def copy(self) -> MigrationState:
        clone = MigrationState()
        clone._applied = dict(self._applied)
        return clone

    def __contains__(self, ref: object) -> bool:
        if not isinstance(ref, (str, tuple)):
            return False
        return self.is_applied(ref)

    def __repr__(self) -> str:
        keys = ", ".join(format_key(k) for k in self._applied)
        return f"MigrationState([{keys}])"
