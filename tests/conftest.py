"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from database import Base, get_session_local, init_db
from services.document_store import DocumentStore
from services.ledger_service import LedgerService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    deposit_account,
    exchange_account,
    reserve_account,
    wallet_account,
)


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(name="store")
def store_fixture(engine):
    """Create a document store over the test database."""
    return DocumentStore(get_session_local(engine))


@pytest.fixture(name="ledger")
def ledger_fixture(store):
    """Create a ledger over the test document store."""
    return LedgerService(store)
