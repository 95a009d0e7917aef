"""Registry of tracked accounts, stored as the ``accounts`` list."""

import logging

from schemas.ledger import TrackedAccount
from services.document_store import DocumentStore
from services.exceptions import AccountAlreadyExists, AccountDoesNotExist
from services.lot_arithmetic import assert_lot_balance

logger = logging.getLogger(__name__)

ACCOUNTS_KEY = "accounts"


class AccountRegistry:
    """CRUD over tracked accounts, keyed by address.

    Writes go to the store without flushing; the ledger facade flushes at
    the end of the enclosing batch.
    """

    @staticmethod
    def get_all(store: DocumentStore) -> dict[str, TrackedAccount]:
        """All tracked accounts by address."""
        return {
            account.address: account
            for account in store.list_iterate(ACCOUNTS_KEY, TrackedAccount)
        }

    @staticmethod
    def get(store: DocumentStore, address: str) -> TrackedAccount | None:
        """Get a tracked account by address, or None if it is not tracked."""
        for account in store.list_iterate(ACCOUNTS_KEY, TrackedAccount):
            if account.address == address:
                return account
        return None

    @staticmethod
    def _position(store: DocumentStore, address: str) -> int | None:
        for position, account in enumerate(store.list_iterate(ACCOUNTS_KEY)):
            if account["address"] == address:
                return position
        return None

    @staticmethod
    def exists(store: DocumentStore, address: str) -> bool:
        return AccountRegistry._position(store, address) is not None

    @staticmethod
    def add(store: DocumentStore, account: TrackedAccount) -> None:
        """Start tracking an account.

        Raises:
            LedgerInvariantError: the account's lots do not match its balance.
            AccountAlreadyExists: the address is already tracked.
        """
        assert_lot_balance(account)

        if AccountRegistry.exists(store, account.address):
            raise AccountAlreadyExists(account.address)

        if not store.list_exists(ACCOUNTS_KEY):
            store.list_create(ACCOUNTS_KEY)

        store.list_append(ACCOUNTS_KEY, account)
        logger.info(
            "Added account %s (%s) with balance %d",
            account.address,
            account.description,
            account.last_update_balance,
        )

    @staticmethod
    def update(store: DocumentStore, account: TrackedAccount) -> None:
        """Replace the stored record of an already tracked account.

        Raises:
            LedgerInvariantError: the account's lots do not match its balance.
            AccountDoesNotExist: the address is not tracked.
        """
        assert_lot_balance(account)

        position = AccountRegistry._position(store, account.address)
        if position is None:
            raise AccountDoesNotExist(account.address)

        store.list_remove_at(ACCOUNTS_KEY, position)
        store.list_append(ACCOUNTS_KEY, account)
        logger.debug(
            "Updated account %s: balance %d in %d lots",
            account.address,
            account.last_update_balance,
            len(account.lots),
        )

    @staticmethod
    def remove(store: DocumentStore, address: str) -> TrackedAccount:
        """Stop tracking an account and return its last record.

        Raises:
            AccountDoesNotExist: the address is not tracked.
        """
        position = AccountRegistry._position(store, address)
        if position is None:
            raise AccountDoesNotExist(address)

        account = store.list_remove_at(ACCOUNTS_KEY, position, TrackedAccount)
        logger.info("Removed account %s", address)
        return account
