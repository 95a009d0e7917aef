"""Centralized logging configuration."""

import logging

from config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"

# Third-party loggers that drown out ledger transitions at DEBUG
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "keyring")


def logging_configured() -> bool:
    """True if the host application already attached root handlers."""
    return bool(logging.getLogger().handlers)


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the ledger.

    ``level`` overrides settings.LOG_LEVEL. The SQLAlchemy and keyring
    loggers are held at WARNING regardless.
    """
    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        level=getattr(logging, (level or settings.LOG_LEVEL).upper()),
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
