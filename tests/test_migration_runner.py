"""
Tests for the startup migration runner.
"""

from unittest.mock import MagicMock, patch

import pytest

from creditgate.db import migration_runner
from creditgate.db.migration_runner import get_sync_database_url, run_migrations


class TestGetSyncDatabaseUrl:
    def test_asyncpg_rewritten(self):
        url = get_sync_database_url("postgresql+asyncpg://u:p@host:5432/db")
        assert url == "postgresql+psycopg2://u:p@host:5432/db"

    def test_plain_url_unchanged(self):
        assert get_sync_database_url("postgresql://host/db") == "postgresql://host/db"

    def test_defaults_to_settings(self):
        assert "+asyncpg" not in get_sync_database_url()


class TestRunMigrations:
    def test_missing_ini_skips(self, tmp_path):
        with (
            patch.object(migration_runner, "ALEMBIC_INI_PATH", tmp_path / "alembic.ini"),
            patch.object(migration_runner.command, "upgrade") as upgrade,
        ):
            run_migrations()

        upgrade.assert_not_called()

    def test_up_to_date_skips_upgrade(self):
        with (
            patch.object(migration_runner, "create_engine", return_value=MagicMock()),
            patch.object(migration_runner, "_get_current_revision", return_value="0001"),
            patch.object(migration_runner, "_get_head_revision", return_value="0001"),
            patch.object(migration_runner.command, "upgrade") as upgrade,
        ):
            run_migrations()

        upgrade.assert_not_called()

    def test_behind_upgrades_to_head(self):
        engine = MagicMock()
        with (
            patch.object(migration_runner, "create_engine", return_value=engine),
            patch.object(migration_runner, "_get_current_revision", return_value=None),
            patch.object(migration_runner, "_get_head_revision", return_value="0001"),
            patch.object(migration_runner.command, "upgrade") as upgrade,
        ):
            run_migrations()

        upgrade.assert_called_once()
        assert upgrade.call_args.args[1] == "head"
        engine.dispose.assert_called_once()

    def test_failure_raises_runtime_error(self):
        with (
            patch.object(migration_runner, "create_engine", return_value=MagicMock()),
            patch.object(
                migration_runner, "_get_current_revision", side_effect=OSError("refused")
            ),
            pytest.raises(RuntimeError, match="Database migration failed"),
        ):
            run_migrations()
