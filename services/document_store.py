"""Key/value document store backing the lot ledger.

Values live in memory and are only written to the ``ledger_documents``
table on an explicit :meth:`DocumentStore.flush`. All dirty keys of one
flush are committed in a single transaction, so a flush is the unit of
durability: a crash either sees every write of a flush or none of them.

Values are held as JSON-compatible data and validated into the requested
type on every read, so callers always receive copies and never alias a
stored record.
"""

import copy
import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python
from sqlalchemy.orm import Session, sessionmaker

from models.ledger_document import LedgerDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")


@lru_cache
def _adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


class DocumentStore:
    """In-memory document cache with explicit, batched flushing."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._documents: dict[str, Any] = {}
        self._dirty: set[str] = set()
        self._removed: set[str] = set()
        self._batch_depth = 0
        self.load()

    # --- Loading / flushing ---

    def load(self) -> None:
        """Replace the in-memory state with what is on disk."""
        db = self._session_factory()
        try:
            rows = db.query(LedgerDocument).all()
            self._documents = {row.key: json.loads(row.value) for row in rows}
        finally:
            db.close()
        self._dirty.clear()
        self._removed.clear()
        logger.debug("Loaded %d ledger documents", len(self._documents))

    def discard(self) -> None:
        """Drop every write made since the last flush."""
        if self._dirty or self._removed:
            logger.warning(
                "Discarding %d unflushed ledger writes",
                len(self._dirty) + len(self._removed),
            )
        self.load()

    def flush(self) -> None:
        """Write all pending changes to the database in one transaction."""
        if not self._dirty and not self._removed:
            return

        db = self._session_factory()
        try:
            for key in sorted(self._dirty):
                db.merge(
                    LedgerDocument(key=key, value=json.dumps(self._documents[key]))
                )
            for key in sorted(self._removed):
                document = db.get(LedgerDocument, key)
                if document is not None:
                    db.delete(document)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.debug(
            "Flushed ledger: %d written, %d removed",
            len(self._dirty),
            len(self._removed),
        )
        self._dirty.clear()
        self._removed.clear()

    @property
    def in_batch(self) -> bool:
        return self._batch_depth > 0

    @contextmanager
    def batch(self) -> Iterator["DocumentStore"]:
        """Group writes so they are flushed together.

        Batches nest; only the outermost one flushes. If the outermost
        batch exits with an exception, or its flush fails, all unflushed
        writes are discarded.
        """
        self._batch_depth += 1
        try:
            yield self
        except BaseException:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self.discard()
            raise
        self._batch_depth -= 1
        if self._batch_depth == 0:
            try:
                self.flush()
            except Exception:
                self.discard()
                raise

    # --- Single values ---

    def exists(self, key: str) -> bool:
        return key in self._documents

    def keys(self) -> list[str]:
        return list(self._documents)

    def get(self, key: str, type_: type[T] | Any = None) -> T | None:
        """Get the value stored under ``key``, or None if there is none.

        When ``type_`` is given the raw value is validated into it.
        """
        if key not in self._documents:
            return None
        raw = self._documents[key]
        if type_ is None:
            return copy.deepcopy(raw)
        return _adapter(type_).validate_python(raw)

    def set(self, key: str, value: Any) -> None:
        self._documents[key] = to_jsonable_python(value)
        self._dirty.add(key)
        self._removed.discard(key)

    def remove(self, key: str) -> bool:
        """Remove ``key``. Returns False if it did not exist."""
        if key not in self._documents:
            return False
        del self._documents[key]
        self._dirty.discard(key)
        self._removed.add(key)
        return True

    # --- Lists ---

    def list_exists(self, name: str) -> bool:
        return isinstance(self._documents.get(name), list)

    def list_create(self, name: str) -> None:
        self.set(name, [])

    def list_append(self, name: str, value: Any) -> None:
        if not self.list_exists(name):
            raise KeyError(f"List does not exist: {name}")
        self._documents[name].append(to_jsonable_python(value))
        self._dirty.add(name)

    def list_iterate(self, name: str, type_: type[T] | Any = None) -> list[T]:
        """Items of list ``name`` in order; empty if the list does not exist."""
        if not self.list_exists(name):
            return []
        items = self._documents[name]
        if type_ is None:
            return copy.deepcopy(items)
        adapter = _adapter(type_)
        return [adapter.validate_python(item) for item in items]

    def list_remove_at(
        self, name: str, position: int, type_: type[T] | Any = None
    ) -> T | None:
        """Remove and return the item at ``position``, or None if out of range."""
        if not self.list_exists(name):
            return None
        items = self._documents[name]
        if not 0 <= position < len(items):
            return None
        raw = items.pop(position)
        self._dirty.add(name)
        if type_ is None:
            return raw
        return _adapter(type_).validate_python(raw)
