# app/core/logging_config.py
"""
Logging setup shared by the API, the scheduler and the CLI.

Application loggers follow LOG_LEVEL; HTTP, database and scheduler libraries
are held at WARNING so order reconciliation output stays readable.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncpg",
    "aiosqlite",
    "apscheduler",
)


def configure_logging(level: Optional[str] = None) -> str:
    """Configure the root logger once and return the effective level name."""
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in ("app", "__main__"):
        logging.getLogger(name).setLevel(numeric_level)

    logging.getLogger(__name__).info(f"Logging configured at level: {level_name}")
    return level_name
