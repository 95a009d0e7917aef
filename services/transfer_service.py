"""Transfer lifecycle: lots in flight between two tracked accounts.

A recorded transfer pulls its lots out of the source account and parks
them in a :class:`~schemas.ledger.PendingTransfer`. Confirming it merges
the lots into the destination; cancelling merges them back into the
source.
"""

import logging
from functools import partial

from schemas.ledger import PendingTransfer, TransferAmount
from services.account_registry import AccountRegistry
from services.document_store import DocumentStore
from services.exceptions import (
    AccountDoesNotExist,
    PendingTransferAlreadyExists,
    PendingTransferDoesNotExist,
)
from services.lot_arithmetic import extract_account_lots, merge_account_lots
from services.lot_numbering import next_lot_number

logger = logging.getLogger(__name__)

TRANSFERS_KEY = "transfers"


class TransferService:
    """Records and resolves pending transfers. Never flushes."""

    @staticmethod
    def pending_transfers(store: DocumentStore) -> list[PendingTransfer]:
        return store.get(TRANSFERS_KEY, list[PendingTransfer]) or []

    @staticmethod
    def record_transfer(
        store: DocumentStore,
        signature: str,
        from_address: str,
        amount: TransferAmount,
        to_address: str,
    ) -> PendingTransfer:
        """Move lots out of ``from_address`` into a new pending transfer.

        Raises:
            AccountDoesNotExist: either account is not tracked.
            AccountHasInsufficientBalance: the source holds less than ``amount``.
            PendingTransferAlreadyExists: ``signature`` is already pending.
        """
        pending_transfers = TransferService.pending_transfers(store)
        if any(pt.signature == signature for pt in pending_transfers):
            raise PendingTransferAlreadyExists(signature)

        from_account = AccountRegistry.get(store, from_address)
        if from_account is None:
            raise AccountDoesNotExist(from_address)
        if not AccountRegistry.exists(store, to_address):
            raise AccountDoesNotExist(to_address)

        quantity = amount.resolve(from_account.last_update_balance)
        lots = extract_account_lots(
            from_account, quantity, partial(next_lot_number, store)
        )

        transfer = PendingTransfer(
            signature=signature,
            from_address=from_address,
            to_address=to_address,
            lots=lots,
        )
        pending_transfers.append(transfer)
        store.set(TRANSFERS_KEY, pending_transfers)
        AccountRegistry.update(store, from_account)

        logger.info(
            "Recorded transfer %s: %d from %s to %s in %d lots",
            signature,
            quantity,
            from_address,
            to_address,
            len(lots),
        )
        return transfer

    @staticmethod
    def resolve_transfer(
        store: DocumentStore, signature: str, success: bool
    ) -> PendingTransfer:
        """Settle a pending transfer.

        On success the lots go to the destination account, otherwise back to
        the source account.

        Raises:
            PendingTransferDoesNotExist: nothing is pending under ``signature``.
            AccountDoesNotExist: the receiving account is no longer tracked.
        """
        pending_transfers = TransferService.pending_transfers(store)
        position = next(
            (i for i, pt in enumerate(pending_transfers) if pt.signature == signature),
            None,
        )
        if position is None:
            raise PendingTransferDoesNotExist(signature)

        transfer = pending_transfers.pop(position)
        address = transfer.to_address if success else transfer.from_address
        account = AccountRegistry.get(store, address)
        if account is None:
            raise AccountDoesNotExist(address)

        store.set(TRANSFERS_KEY, pending_transfers)
        merge_account_lots(account, transfer.lots)
        AccountRegistry.update(store, account)

        logger.info(
            "%s transfer %s: %d lots merged into %s",
            "Confirmed" if success else "Cancelled",
            signature,
            len(transfer.lots),
            address,
        )
        return transfer
