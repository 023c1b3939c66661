"""
Migration discovery.

Migration files live in a migrations directory, one module per migration,
named ``NNNN_slug.py``. Each defines exactly one ``Migration`` subclass:

    migrations/
        0001_initial.py          -> app "default" (or --app)
        0002_add_bio.py
        blog/
            0001_posts.py        -> app "blog"

Files directly in the directory belong to ``default_app``; each
subdirectory holds the migrations of the app it is named after. A class
without an ``id`` takes its file's stem; a class without its own ``app``
takes the app of its location.
"""

from __future__ import annotations

import importlib.util
import logging
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Type, Union

from ..faults import MigrationLoadFault, MigrationsDirNotFoundFault
from .migration import Migration
from .state import DEFAULT_APP

logger = logging.getLogger("strata.migrations.loader")

MIGRATION_FILE_RE = re.compile(r"^(\d{4,})_(\w+)\.py$")


def migration_files(directory: Union[str, Path]) -> List[Path]:
    """``NNNN_slug.py`` files directly inside ``directory``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and MIGRATION_FILE_RE.match(p.name))


def app_directories(directory: Union[str, Path]) -> Dict[str, Path]:
    """App name -> subdirectory, for every subdirectory holding migrations."""
    directory = Path(directory)
    apps: Dict[str, Path] = {}
    for child in sorted(directory.iterdir()):
        if child.is_dir() and not child.name.startswith(("_", ".")) and migration_files(child):
            apps[child.name] = child
    return apps


def app_directory(directory: Union[str, Path], app: str, default_app: str = DEFAULT_APP) -> Path:
    """Where migrations of ``app`` are stored."""
    directory = Path(directory)
    return directory if app == default_app else directory / app


def _import_file(path: Path, app: str) -> object:
    module_name = f"strata_migrations.{app}.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise MigrationLoadFault(str(path), "cannot create an import spec")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise MigrationLoadFault(str(path), f"{type(exc).__name__}: {exc}") from exc
    return module


def load_migration_file(path: Union[str, Path], app: str = DEFAULT_APP) -> Migration:
    """Import one migration file and instantiate its ``Migration`` subclass."""
    path = Path(path)
    module = _import_file(path, app)

    classes: List[Type[Migration]] = [
        obj
        for obj in vars(module).values()
        if isinstance(obj, type)
        and issubclass(obj, Migration)
        and obj is not Migration
        and obj.__module__ == module.__name__
    ]
    if not classes:
        raise MigrationLoadFault(str(path), "no Migration subclass defined")
    if len(classes) > 1:
        names = ", ".join(sorted(c.__name__ for c in classes))
        raise MigrationLoadFault(str(path), f"more than one Migration subclass defined ({names})")

    migration = classes[0]()
    if not migration.id:
        migration.id = path.stem
    if "app" not in vars(classes[0]):
        migration.app = app
    logger.debug(f"Loaded {migration.label} from {path}")
    return migration


def load_migrations(
    directory: Union[str, Path],
    default_app: str = DEFAULT_APP,
    app: Optional[str] = None,
) -> List[Migration]:
    """
    Load every migration under ``directory``.

    Migrations come back grouped by app (default app first), each group in
    file-name order; that order is what ``MigrationRunner`` uses to break
    ties. ``app`` restricts loading to a single app.

    Raises:
        MigrationsDirNotFoundFault: ``directory`` does not exist
        MigrationLoadFault: a file cannot be imported or defines no migration
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MigrationsDirNotFoundFault(str(directory))

    locations = [(default_app, directory)]
    locations.extend(app_directories(directory).items())

    migrations: List[Migration] = []
    for location_app, location in locations:
        if app is not None and location_app != app:
            continue
        for path in migration_files(location):
            migrations.append(load_migration_file(path, location_app))

    logger.info(f"Loaded {len(migrations)} migration(s) from {directory}")
    return migrations
