"""LedgerDocument model - one JSON document per ledger key."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from database import Base


class LedgerDocument(Base):
    """A single ledger record (value or list) stored as JSON text.

    The ledger's key space is small and fixed (``accounts``, ``transfers``,
    ``orders`` ...), so each key holds its whole collection in one row.
    """

    __tablename__ = "ledger_documents"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)  # JSON-serialized
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
