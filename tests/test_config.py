"""
Tests for layered configuration loading.
"""

import pytest

from strata.config import ConfigLoader, StrataConfig
from strata.faults import ConfigInvalidFault, DatabaseConnectionFault


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_defaults(self):
        config = ConfigLoader.load(environ={})
        assert config == StrataConfig()
        assert config.resolved_dialect == "sqlite"
        assert str(config.migrations_path) == "migrations"

    def test_dialect_follows_url(self):
        config = ConfigLoader.load(environ={"STRATA_DATABASE_URL": "postgresql://u@h/db"})
        assert config.resolved_dialect == "postgresql"

    def test_unknown_scheme(self):
        config = ConfigLoader.load(environ={"STRATA_DATABASE_URL": "oracle://x"})
        with pytest.raises(DatabaseConnectionFault):
            config.resolved_dialect


class TestPrecedence:
    def test_environment_variables(self):
        config = ConfigLoader.load(environ={
            "STRATA_MIGRATIONS_DIR": "db/migrations",
            "STRATA_APP": "core",
            "STRATA_ATOMIC": "yes",
            "STRATA_UNKNOWN": "ignored",
            "PATH": "/usr/bin",
        })
        assert config.migrations_dir == "db/migrations"
        assert config.app == "core"
        assert config.atomic is True

    def test_database_url_fallback(self):
        config = ConfigLoader.load(environ={"DATABASE_URL": "postgresql://a@h/db"})
        assert config.database_url == "postgresql://a@h/db"

        config = ConfigLoader.load(environ={
            "DATABASE_URL": "postgresql://a@h/db",
            "STRATA_DATABASE_URL": "sqlite:///other.db",
        })
        assert config.database_url == "sqlite:///other.db"

    def test_env_file_then_environment_then_overrides(self, tmp_path):
        env_file = tmp_path / "settings.env"
        env_file.write_text(
            "STRATA_DATABASE_URL=sqlite:///from_file.db\n"
            "STRATA_HISTORY_TABLE=file_history\n"
            "STRATA_APP=file_app\n"
        )
        config = ConfigLoader.load(
            env_file=str(env_file),
            environ={"STRATA_APP": "env_app", "STRATA_HISTORY_TABLE": "env_history"},
            overrides={"history_table": "cli_history", "database_url": None},
        )
        assert config.database_url == "sqlite:///from_file.db"
        assert config.app == "env_app"
        assert config.history_table == "cli_history"

    def test_dotenv_in_working_directory(self, tmp_path):
        (tmp_path / ".env").write_text("STRATA_MIGRATIONS_DIR=from_dotenv\n")
        config = ConfigLoader.load(environ={})
        assert config.migrations_dir == "from_dotenv"

    def test_dialect_aliases_are_normalized(self):
        config = ConfigLoader.load(environ={}, overrides={"dialect": "postgres"})
        assert config.dialect == "postgresql"
        assert config.resolved_dialect == "postgresql"


class TestValidation:
    def test_missing_env_file(self, tmp_path):
        with pytest.raises(ConfigInvalidFault) as exc:
            ConfigLoader.load(env_file=str(tmp_path / "missing.env"), environ={})
        assert exc.value.code == "CONFIG_INVALID"

    @pytest.mark.parametrize("value", ["maybe", "2"])
    def test_bad_boolean(self, value):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(environ={"STRATA_ATOMIC": value})

    @pytest.mark.parametrize("value", ["", "drop table", "1history"])
    def test_bad_history_table(self, value):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(environ={}, overrides={"history_table": value})

    def test_unknown_dialect(self):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(environ={}, overrides={"dialect": "oracle"})
