"""Tests for database migrations utilities."""

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from alembic.config import Config

from app.db import migrations
from app.db.migrations import run_migrations


def _patched_alembic(stack: ExitStack, heads, current_revision) -> SimpleNamespace:
    """Patch Alembic and the engine so ``run_migrations`` sees the given revisions."""
    mock_cfg = MagicMock(spec=Config)
    stack.enter_context(patch("app.db.migrations._alembic_config", return_value=mock_cfg))
    mock_command = stack.enter_context(patch("app.db.migrations.command"))
    mock_script_dir = stack.enter_context(patch("app.db.migrations.ScriptDirectory"))
    mock_engine = stack.enter_context(patch("app.db.session.engine"))
    mock_migration_context = stack.enter_context(
        patch("alembic.runtime.migration.MigrationContext")
    )

    mock_script_dir.from_config.return_value.get_heads.return_value = heads

    mock_connection = MagicMock()
    mock_connection.__enter__ = MagicMock(return_value=mock_connection)
    mock_connection.__exit__ = MagicMock(return_value=None)
    mock_engine.connect.return_value = mock_connection

    mock_context = MagicMock()
    mock_context.get_current_revision.return_value = current_revision
    mock_migration_context.configure.return_value = mock_context

    return SimpleNamespace(command=mock_command, cfg=mock_cfg, engine=mock_engine)


def test_run_migrations_upgrades_when_behind() -> None:
    with ExitStack() as stack:
        mocks = _patched_alembic(stack, ["202511010900"], None)

        run_migrations()

        mocks.engine.dispose.assert_called_once()
        mocks.command.upgrade.assert_called_once_with(mocks.cfg, "heads")


def test_run_migrations_upgrade_fails() -> None:
    with ExitStack() as stack:
        mocks = _patched_alembic(stack, ["202511010900"], "000000000000")
        mocks.command.upgrade.side_effect = Exception("Migration failed")

        with pytest.raises(Exception, match="Migration failed"):
            run_migrations()


def test_run_migrations_already_at_head() -> None:
    with ExitStack() as stack:
        mocks = _patched_alembic(stack, ["202511010900"], "202511010900")

        run_migrations()

        mocks.command.upgrade.assert_not_called()


def test_run_migrations_upgrades_when_status_check_fails() -> None:
    with ExitStack() as stack:
        mocks = _patched_alembic(stack, ["202511010900"], None)
        mocks.engine.connect.side_effect = RuntimeError("no connection")

        run_migrations()

        mocks.command.upgrade.assert_called_once()


def test_alembic_config_points_at_server_scripts() -> None:
    cfg = migrations._alembic_config()

    script_location = Path(cfg.get_main_option("script_location"))
    assert script_location == migrations.SERVER_ROOT / "alembic"
    assert (script_location / "versions" / "202511010900_create_categories_tables.py").exists()
    assert cfg.get_main_option("sqlalchemy.url")
