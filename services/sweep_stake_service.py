"""Sweep stake bookkeeping.

The sweep stake account is the tracked stake account that rewards get
swept into. Transitory sweep stakes are short-lived stake accounts used
during a sweep; each one is also registered as an (initially empty)
tracked account so its lots can be followed.
"""

import logging

from schemas.ledger import SweepStakeAccount, TrackedAccount, TransitorySweepStake
from services.account_registry import AccountRegistry
from services.document_store import DocumentStore
from services.exceptions import AccountAlreadyExists, AccountDoesNotExist

logger = logging.getLogger(__name__)

SWEEP_STAKE_ACCOUNT_KEY = "sweep-stake-account"
TRANSITORY_SWEEP_STAKE_ACCOUNTS_KEY = "transitory-sweep-stake-accounts"


class SweepStakeService:
    """Manages the sweep stake account and transitory sweep stakes. Never flushes."""

    @staticmethod
    def get_sweep_stake_account(store: DocumentStore) -> SweepStakeAccount | None:
        return store.get(SWEEP_STAKE_ACCOUNT_KEY, SweepStakeAccount)

    @staticmethod
    def set_sweep_stake_account(
        store: DocumentStore, sweep_stake_account: SweepStakeAccount
    ) -> None:
        """Designate the sweep stake account.

        Raises:
            AccountDoesNotExist: the address is not a tracked account.
        """
        if not AccountRegistry.exists(store, sweep_stake_account.address):
            raise AccountDoesNotExist(sweep_stake_account.address)
        store.set(SWEEP_STAKE_ACCOUNT_KEY, sweep_stake_account)
        logger.info("Sweep stake account set to %s", sweep_stake_account.address)

    @staticmethod
    def get_transitory_sweep_stake_addresses(store: DocumentStore) -> set[str]:
        transitory = store.get(
            TRANSITORY_SWEEP_STAKE_ACCOUNTS_KEY, list[TransitorySweepStake]
        ) or []
        return {tss.address for tss in transitory}

    @staticmethod
    def _set_transitory_sweep_stake_addresses(
        store: DocumentStore, addresses: set[str]
    ) -> None:
        store.set(
            TRANSITORY_SWEEP_STAKE_ACCOUNTS_KEY,
            [TransitorySweepStake(address=address) for address in sorted(addresses)],
        )

    @staticmethod
    def add_transitory_sweep_stake_address(
        store: DocumentStore, address: str, current_epoch: int
    ) -> TrackedAccount:
        """Register a transitory sweep stake and its empty tracked account.

        Raises:
            AccountAlreadyExists: the address is already a transitory sweep
                stake or a tracked account.
        """
        addresses = SweepStakeService.get_transitory_sweep_stake_addresses(store)
        if address in addresses or AccountRegistry.exists(store, address):
            raise AccountAlreadyExists(address)

        addresses.add(address)
        SweepStakeService._set_transitory_sweep_stake_addresses(store, addresses)

        account = TrackedAccount(
            address=address,
            description="Transitory stake account",
            last_update_epoch=current_epoch,
            last_update_balance=0,
            lots=[],
        )
        AccountRegistry.add(store, account)
        return account

    @staticmethod
    def remove_transitory_sweep_stake_address(
        store: DocumentStore, address: str
    ) -> TrackedAccount | None:
        """Forget a transitory sweep stake and stop tracking its account.

        Returns the removed tracked account, or None if it was no longer
        tracked.

        Raises:
            AccountDoesNotExist: the address is not a transitory sweep stake.
        """
        addresses = SweepStakeService.get_transitory_sweep_stake_addresses(store)
        if address not in addresses:
            raise AccountDoesNotExist(address)

        account = None
        if AccountRegistry.exists(store, address):
            account = AccountRegistry.remove(store, address)
            if account.last_update_balance:
                logger.warning(
                    "Removed transitory sweep stake %s with balance %d",
                    address,
                    account.last_update_balance,
                )

        addresses.remove(address)
        SweepStakeService._set_transitory_sweep_stake_addresses(store, addresses)
        return account
