"""Run Alembic migrations up to head against the configured database."""
from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from mehfil.core.settings import settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def build_config(db_url: str | None = None) -> Config:
    """Return an Alembic config pointing at the project's migrations folder."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Alembic runs synchronously, so the async driver is swapped out.
    cfg.set_main_option("sqlalchemy.url", db_url or settings.database_url_sync)
    return cfg


def run_upgrade_head() -> None:
    command.upgrade(build_config(), "head")


if __name__ == "__main__":
    run_upgrade_head()
