"""Run Alembic migrations for the categories schema from application code."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory

from app.core.config import settings

logger = logging.getLogger(__name__)

SERVER_ROOT = Path(__file__).resolve().parents[2]


def _alembic_config() -> Config:
    """Build an Alembic config pointing at the server's migration scripts."""

    alembic_cfg = Config(str(SERVER_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(SERVER_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def run_migrations() -> None:
    """Upgrade the database to the latest revision unless it is already there."""
    from alembic.runtime.migration import MigrationContext

    from app.db.session import engine as app_engine

    # Pooled application connections can hold locks the upgrade needs.
    app_engine.dispose()

    cfg = _alembic_config()

    try:
        heads = list(ScriptDirectory.from_config(cfg).get_heads() or [])
        with app_engine.connect() as connection:
            current_rev = MigrationContext.configure(connection).get_current_revision()
        logger.info("Alembic heads: %s, database revision: %s", ",".join(heads), current_rev)
        if current_rev and current_rev in heads:
            logger.info("Database is already at head revision, skipping migrations")
            return
    except Exception as exc:
        logger.warning("Unable to check migration status: %s, proceeding with upgrade", exc)

    logger.info("Applying database migrations (alembic upgrade heads)")
    try:
        command.upgrade(cfg, "heads")
    except Exception:
        logger.exception("Alembic upgrade failed")
        raise
    logger.info("Database migrations applied successfully")


__all__ = ["run_migrations"]
