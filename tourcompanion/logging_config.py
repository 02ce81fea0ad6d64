"""
logging_config.py — Loguru setup for TourCompanion

One backend for everything: loguru sinks, with stdlib records (SQLAlchemy,
uvicorn, alembic, the notification store) forwarded into them.

Business Rules:
- ENVIRONMENT=production writes JSON lines to stdout and to a rotating file
  under LOG_DIR (50 MB per file, kept 7 days)
- Any other environment writes coloured one-line records to stdout
- LOG_LEVEL sets the minimum level for every sink

Called by: tourcompanion/main.py (lifespan), scripts/clear_notifications.py
Depends on: LOG_LEVEL, ENVIRONMENT, LOG_DIR env vars
"""

import logging
import os
import sys

from loguru import logger

DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


def _add_sinks(level: str, production: bool) -> None:
    if not production:
        logger.add(sys.stdout, level=level, format=DEV_FORMAT, colorize=True)
        return

    log_dir = os.getenv("LOG_DIR", "/var/log/tourcompanion")
    logger.add(sys.stdout, level=level, format="{message}", serialize=True)
    logger.add(
        os.path.join(log_dir, "tourcompanion.log"),
        level=level,
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        serialize=True,
    )


def setup_logging() -> None:
    """Replace loguru's default sink and forward stdlib logging. Safe to call twice."""
    logger.remove()

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    production = os.getenv("ENVIRONMENT", "development").lower() == "production"
    _add_sinks(level, production)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured (level={}, production={})", level, production)


class _InterceptHandler(logging.Handler):
    """Forward a stdlib record to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
