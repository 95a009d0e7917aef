"""SQLAlchemy ORM models."""

from .ledger_document import LedgerDocument

__all__ = ["LedgerDocument"]
