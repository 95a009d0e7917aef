"""Database setup and session management."""

import logging
from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _db_file_path(database_url: str) -> Path | None:
    """Extract the filesystem path from a ``sqlite:///`` URL.

    Returns ``None`` for in-memory databases (``:memory:`` or empty path).
    """
    if not database_url.startswith("sqlite"):
        return None
    # sqlite:///./ledger/ledger.db  ->  ./ledger/ledger.db
    # sqlite:///:memory:            ->  :memory:
    path_part = database_url.split("///", 1)[-1]
    if not path_part or path_part == ":memory:":
        return None
    return Path(path_part)


def sqlite_url(path: Path) -> str:
    """Build a ``sqlite:///`` URL for a database file."""
    return f"sqlite:///{path}"


def create_ledger_engine(database_url: str) -> Engine:
    """Create an engine for a ledger database, creating its directory if needed."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    db_path = _db_file_path(database_url)
    if db_path is not None and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Created ledger directory %s", db_path.parent)

    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=False,
    )


@lru_cache
def get_engine() -> Engine:
    """Get or create the engine for the configured ledger database (cached)."""
    return create_ledger_engine(settings.LEDGER_DATABASE_URL)


def init_db(engine: Engine) -> None:
    """Create all ledger tables that do not exist yet."""
    # Import models so they register on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_session_local(engine: Engine | None = None) -> sessionmaker[Session]:
    """Get a sessionmaker bound to the engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine or get_engine(),
    )
