"""Centralized logging configuration for the Mehfil service."""

from __future__ import annotations

import logging
import sys

from mehfil.core.settings import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Settings | None = None) -> None:
    """Configure the root logger once for the running process.

    Args:
        config: Settings instance, uses the global settings if None
    """
    config = config or default_settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is controlled by SQL_DEBUG; keep the engine logger quiet otherwise.
    if not config.sql_debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
