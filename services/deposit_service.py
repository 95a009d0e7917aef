"""Deposit lifecycle: transfers into an exchange deposit address.

A deposit is a pending transfer plus a :class:`~schemas.ledger.PendingDeposit`
audit record that remembers which exchange it is bound for.
"""

import logging

from schemas.exchange import Exchange
from schemas.ledger import Exact, PendingDeposit
from services.document_store import DocumentStore
from services.exceptions import PendingDepositDoesNotExist
from services.transfer_service import TransferService

logger = logging.getLogger(__name__)

DEPOSITS_KEY = "deposits"


class DepositService:
    """Records and resolves pending exchange deposits. Never flushes."""

    @staticmethod
    def pending_deposits(
        store: DocumentStore, exchange: Exchange | None = None
    ) -> list[PendingDeposit]:
        """Pending deposits, optionally only those bound for ``exchange``."""
        deposits = store.list_iterate(DEPOSITS_KEY, PendingDeposit)
        if exchange is None:
            return deposits
        return [deposit for deposit in deposits if deposit.exchange == exchange]

    @staticmethod
    def record_deposit(
        store: DocumentStore,
        signature: str,
        from_address: str,
        amount: int,
        exchange: Exchange,
        deposit_address: str,
    ) -> PendingDeposit:
        """Record a deposit and the transfer that carries its lots."""
        TransferService.record_transfer(
            store, signature, from_address, Exact(quantity=amount), deposit_address
        )

        if not store.list_exists(DEPOSITS_KEY):
            store.list_create(DEPOSITS_KEY)
        deposit = PendingDeposit(signature=signature, exchange=exchange, amount=amount)
        store.list_append(DEPOSITS_KEY, deposit)
        logger.info(
            "Recorded %s deposit %s of %d into %s",
            exchange.value,
            signature,
            amount,
            deposit_address,
        )
        return deposit

    @staticmethod
    def resolve_deposit(
        store: DocumentStore, signature: str, success: bool
    ) -> PendingDeposit:
        """Drop the pending deposit and settle its transfer.

        Raises:
            PendingDepositDoesNotExist: nothing is pending under ``signature``.
            PendingTransferDoesNotExist: the paired transfer is missing.
        """
        position = next(
            (
                i
                for i, deposit in enumerate(store.list_iterate(DEPOSITS_KEY))
                if deposit["signature"] == signature
            ),
            None,
        )
        if position is None:
            raise PendingDepositDoesNotExist(signature)

        TransferService.resolve_transfer(store, signature, success)
        return store.list_remove_at(DEPOSITS_KEY, position, PendingDeposit)
