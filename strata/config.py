"""
Config system - layered configuration for the migration engine.

Merge precedence (later overrides earlier):

1. Defaults (``StrataConfig`` field defaults)
2. ``.env`` file (read with python-dotenv, never exported to ``os.environ``)
3. Environment variables (``STRATA_*``; ``DATABASE_URL`` is honored too)
4. Explicit overrides (CLI options)

Keys:
    STRATA_DATABASE_URL    database URL (falls back to DATABASE_URL)
    STRATA_MIGRATIONS_DIR  directory holding migration files
    STRATA_APP             default app for migrations without one
    STRATA_DIALECT         SQL dialect (derived from the URL when unset)
    STRATA_HISTORY_TABLE   name of the history table
    STRATA_ATOMIC          wrap each migration in a transaction
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values

from .faults import ConfigInvalidFault

logger = logging.getLogger("strata.config")

ENV_PREFIX = "STRATA_"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class StrataConfig:
    """Resolved configuration."""

    database_url: str = "sqlite:///db.sqlite3"
    migrations_dir: str = "migrations"
    app: str = "default"
    dialect: Optional[str] = None
    history_table: str = "strata_migrations"
    atomic: bool = False

    @property
    def resolved_dialect(self) -> str:
        """The explicit dialect, or the one implied by ``database_url``."""
        if self.dialect:
            return self.dialect
        from .db import detect_driver

        return detect_driver(self.database_url)

    @property
    def migrations_path(self) -> Path:
        return Path(self.migrations_dir)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Usage:
        config = ConfigLoader.load(env_file=".env", overrides={"atomic": True})
        config.database_url
    """

    def __init__(self, env_prefix: str = ENV_PREFIX):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        env_prefix: str = ENV_PREFIX,
    ) -> StrataConfig:
        """
        Args:
            env_file: Path to a .env file (default: ``.env`` if present)
            overrides: Explicit values (highest precedence); None values are ignored
            environ: Environment mapping (default: ``os.environ``)
            env_prefix: Prefix for environment variables

        Raises:
            ConfigInvalidFault: a value has the wrong type or an explicitly
                given env file does not exist
        """
        loader = cls(env_prefix=env_prefix)

        if env_file is not None:
            if not Path(env_file).is_file():
                raise ConfigInvalidFault("env_file", f"{env_file} does not exist")
            loader._load_mapping(dotenv_values(env_file))
        elif Path(".env").is_file():
            loader._load_mapping(dotenv_values(".env"))

        loader._load_mapping(os.environ if environ is None else environ)

        if overrides:
            loader.config_data.update({k: v for k, v in overrides.items() if v is not None})

        return loader.build()

    def _load_mapping(self, values: Mapping[str, Optional[str]]) -> None:
        known = {f.name for f in fields(StrataConfig)}
        url = values.get("DATABASE_URL")
        if url:
            self.config_data["database_url"] = url
        for key, value in values.items():
            if value is None or not key.startswith(self.env_prefix):
                continue
            name = key[len(self.env_prefix):].lower()
            if name in known:
                self.config_data[name] = value
            else:
                logger.debug(f"Ignoring unknown setting {key}")

    def build(self) -> StrataConfig:
        data = dict(self.config_data)
        if "atomic" in data:
            data["atomic"] = _parse_bool("atomic", data["atomic"])
        for key in ("database_url", "migrations_dir", "app", "history_table"):
            if key in data and not str(data[key]).strip():
                raise ConfigInvalidFault(key, "must not be empty")
            if key in data:
                data[key] = str(data[key])
        if "history_table" in data and not _IDENTIFIER_RE.match(data["history_table"]):
            raise ConfigInvalidFault("history_table", f"{data['history_table']!r} is not a valid identifier")
        if data.get("dialect"):
            from .migrations.dialects import get_dialect

            data["dialect"] = get_dialect(str(data["dialect"])).name
        return StrataConfig(**data)


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "1", "on"):
        return True
    if text in ("false", "no", "0", "off", ""):
        return False
    raise ConfigInvalidFault(key, f"expected a boolean, got {value!r}")
