"""Persistent lot number counter."""

from services.document_store import DocumentStore

NEXT_LOT_NUMBER_KEY = "next_lot_number"


def next_lot_number(store: DocumentStore) -> int:
    """Return the next unused lot number and advance the counter.

    Does not flush: the caller flushes together with the record that
    consumes the number.
    """
    lot_number = store.get(NEXT_LOT_NUMBER_KEY, int)
    if lot_number is None:
        lot_number = 0
    store.set(NEXT_LOT_NUMBER_KEY, lot_number + 1)
    return lot_number
