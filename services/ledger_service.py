"""Lot ledger facade.

Single entry point over the document store, the account registry and the
deposit / transfer / order lifecycles. Every mutating operation runs in
one store batch, so all records it touches are flushed together, and
checks on the way out that the ledger's total quantity moved by exactly
what the operation ingested or removed (zero for every lifecycle step).

Transaction conventions:
- Services (``TransferService``, ``OrderService`` ...) write to the store
  but never flush.
- ``LedgerService`` opens the batch; the outermost batch flushes on
  success and discards every unflushed write on error.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from functools import partial
from pathlib import Path

from database import create_ledger_engine, get_engine, get_session_local, init_db, sqlite_url
from logging_config import logging_configured, setup_logging
from schemas.exchange import Exchange, ExchangeCredentials
from schemas.ledger import (
    DisposedLot,
    Exact,
    Lot,
    LotAcquisition,
    OpenOrder,
    OrderFill,
    PendingDeposit,
    PendingTransfer,
    SweepStakeAccount,
    TrackedAccount,
    TransferAmount,
    total_amount,
)
from services import credential_manager
from services.account_registry import AccountRegistry
from services.deposit_service import DepositService
from services.document_store import DocumentStore
from services.exceptions import (
    AccountDoesNotExist,
    LedgerInvariantError,
    PendingTransferBelongsToDeposit,
)
from services.lot_arithmetic import assert_lot_balance, extract_account_lots
from services.lot_numbering import next_lot_number
from services.order_service import OrderService
from services.sweep_stake_service import SweepStakeService
from services.transfer_service import TransferService

logger = logging.getLogger(__name__)

LEDGER_DB_FILENAME = "ledger.db"


class LedgerService:
    """Lot ledger over a :class:`DocumentStore`."""

    def __init__(self, store: DocumentStore):
        self.store = store

    @classmethod
    def open(cls, path: Path | str | None = None) -> "LedgerService":
        """Open the ledger in directory ``path``, creating it if needed.

        Without a path the configured ``LEDGER_DATABASE_URL`` is used.
        Logging is set up from settings unless the host application has
        already configured it.
        """
        if not logging_configured():
            setup_logging()
        if path is None:
            engine = get_engine()
        else:
            db_path = Path(path) / LEDGER_DB_FILENAME
            engine = create_ledger_engine(sqlite_url(db_path))
        init_db(engine)
        logger.info("Opened ledger at %s", engine.url)
        return cls(DocumentStore(get_session_local(engine)))

    # --- Batching ---

    @contextmanager
    def batch(self) -> Iterator["LedgerService"]:
        """Apply several mutations as one flush."""
        with self.store.batch():
            yield self

    @contextmanager
    def _transition(self, description: str, expected_change: int = 0) -> Iterator[None]:
        before = self.total_quantity()
        with self.store.batch():
            yield
            change = self.total_quantity() - before
            if change != expected_change:
                raise LedgerInvariantError(
                    f"{description} changed the ledger total by {change}, "
                    f"expected {expected_change}"
                )

    def next_lot_number(self) -> int:
        """Allocate a lot number. Flushed with the caller's next batch."""
        return next_lot_number(self.store)

    def total_quantity(self) -> int:
        """Quantity held across accounts, pending transfers, open orders and disposals."""
        accounts = sum(
            assert_lot_balance(account) for account in self.get_accounts().values()
        )
        transfers = sum(total_amount(pt.lots) for pt in self.pending_transfers())
        orders = sum(total_amount(order.lots) for order in self.open_orders())
        disposed = sum(dl.lot.amount for dl in self.disposed_lots())
        return accounts + transfers + orders + disposed

    # --- Accounts ---

    def get_account(self, address: str) -> TrackedAccount | None:
        return AccountRegistry.get(self.store, address)

    def get_accounts(self) -> dict[str, TrackedAccount]:
        return AccountRegistry.get_all(self.store)

    def add_account(self, account: TrackedAccount) -> None:
        with self._transition(
            f"Adding account {account.address}", account.last_update_balance
        ):
            AccountRegistry.add(self.store, account)

    def update_account(self, account: TrackedAccount) -> None:
        """Replace a tracked account's record, e.g. after syncing its balance."""
        existing = self.get_account(account.address)
        if existing is None:
            raise AccountDoesNotExist(account.address)
        change = account.last_update_balance - existing.last_update_balance
        with self._transition(f"Updating account {account.address}", change):
            AccountRegistry.update(self.store, account)

    def remove_account(self, address: str) -> TrackedAccount:
        existing = self.get_account(address)
        if existing is None:
            raise AccountDoesNotExist(address)
        with self._transition(
            f"Removing account {address}", -existing.last_update_balance
        ):
            return AccountRegistry.remove(self.store, address)

    def add_lot(
        self,
        address: str,
        acquisition: LotAcquisition,
        amount: int,
        epoch: int | None = None,
    ) -> Lot:
        """Credit a newly acquired lot to a tracked account.

        ``epoch``, when given, becomes the account's ``last_update_epoch``.
        """
        with self._transition(f"Adding lot to {address}", amount):
            account = self.get_account(address)
            if account is None:
                raise AccountDoesNotExist(address)

            lot = Lot(
                lot_number=self.next_lot_number(),
                acquisition=acquisition,
                amount=amount,
            )
            account.lots.append(lot)
            account.last_update_balance += amount
            if epoch is not None:
                account.last_update_epoch = epoch
            AccountRegistry.update(self.store, account)

        logger.info(
            "Added lot %d of %d (%s) to %s",
            lot.lot_number,
            amount,
            acquisition.kind,
            address,
        )
        return lot

    def extract_lots(
        self, account: TrackedAccount, amount: TransferAmount | int
    ) -> list[Lot]:
        """Take lots out of ``account`` in place, without storing the account.

        Used to stage lots for :meth:`record_order`. Lot numbers minted for
        split lots are flushed immediately so they are never reused.
        """
        if isinstance(amount, int):
            amount = Exact(quantity=amount)
        with self.store.batch():
            return extract_account_lots(
                account,
                amount.resolve(account.last_update_balance),
                partial(next_lot_number, self.store),
            )

    # --- Deposits ---

    def pending_deposits(self, exchange: Exchange | None = None) -> list[PendingDeposit]:
        return DepositService.pending_deposits(self.store, exchange)

    def record_deposit(
        self,
        signature: str,
        from_address: str,
        amount: int,
        exchange: Exchange,
        deposit_address: str,
    ) -> PendingDeposit:
        with self._transition(f"Recording deposit {signature}"):
            return DepositService.record_deposit(
                self.store, signature, from_address, amount, exchange, deposit_address
            )

    def confirm_deposit(self, signature: str) -> PendingDeposit:
        """The deposit landed: its lots move into the exchange deposit account."""
        with self._transition(f"Confirming deposit {signature}"):
            return DepositService.resolve_deposit(self.store, signature, success=True)

    def cancel_deposit(self, signature: str) -> PendingDeposit:
        """The deposit failed: its lots return to the sending account."""
        with self._transition(f"Cancelling deposit {signature}"):
            return DepositService.resolve_deposit(self.store, signature, success=False)

    # --- Transfers ---

    def pending_transfers(self) -> list[PendingTransfer]:
        return TransferService.pending_transfers(self.store)

    def record_transfer(
        self,
        signature: str,
        from_address: str,
        amount: TransferAmount,
        to_address: str,
    ) -> PendingTransfer:
        with self._transition(f"Recording transfer {signature}"):
            return TransferService.record_transfer(
                self.store, signature, from_address, amount, to_address
            )

    def confirm_transfer(self, signature: str) -> PendingTransfer:
        return self._resolve_transfer(signature, success=True)

    def cancel_transfer(self, signature: str) -> PendingTransfer:
        return self._resolve_transfer(signature, success=False)

    def _resolve_transfer(self, signature: str, success: bool) -> PendingTransfer:
        """Settle a plain transfer. Deposits go through confirm/cancel_deposit."""
        if any(d.signature == signature for d in self.pending_deposits()):
            raise PendingTransferBelongsToDeposit(signature)
        action = "Confirming" if success else "Cancelling"
        with self._transition(f"{action} transfer {signature}"):
            return TransferService.resolve_transfer(self.store, signature, success)

    # --- Orders ---

    def open_orders(self, exchange: Exchange | None = None) -> list[OpenOrder]:
        return OrderService.open_orders(self.store, exchange)

    def disposed_lots(self) -> list[DisposedLot]:
        return OrderService.disposed_lots(self.store)

    def record_order(
        self,
        deposit_account: TrackedAccount,
        exchange: Exchange,
        pair: str,
        order_id: str,
        lots: list[Lot],
    ) -> OpenOrder:
        """Open an order for lots already extracted from ``deposit_account``."""
        with self._transition(f"Recording order {order_id}"):
            return OrderService.record_order(
                self.store, deposit_account, exchange, pair, order_id, lots
            )

    def confirm_order(self, order_id: str, price: Decimal, when: date) -> OpenOrder:
        with self._transition(f"Confirming order {order_id}"):
            return OrderService.resolve_order(
                self.store, order_id, OrderFill(price=price, when=when)
            )

    def cancel_order(self, order_id: str) -> OpenOrder:
        with self._transition(f"Cancelling order {order_id}"):
            return OrderService.resolve_order(self.store, order_id, None)

    # --- Sweep stake ---

    def get_sweep_stake_account(self) -> SweepStakeAccount | None:
        return SweepStakeService.get_sweep_stake_account(self.store)

    def set_sweep_stake_account(self, sweep_stake_account: SweepStakeAccount) -> None:
        with self.store.batch():
            SweepStakeService.set_sweep_stake_account(self.store, sweep_stake_account)

    def get_transitory_sweep_stake_addresses(self) -> set[str]:
        return SweepStakeService.get_transitory_sweep_stake_addresses(self.store)

    def add_transitory_sweep_stake_address(
        self, address: str, current_epoch: int
    ) -> TrackedAccount:
        with self._transition(f"Adding transitory sweep stake {address}"):
            return SweepStakeService.add_transitory_sweep_stake_address(
                self.store, address, current_epoch
            )

    def remove_transitory_sweep_stake_address(self, address: str) -> TrackedAccount | None:
        existing = self.get_account(address)
        change = -existing.last_update_balance if existing is not None else 0
        with self._transition(f"Removing transitory sweep stake {address}", change):
            return SweepStakeService.remove_transitory_sweep_stake_address(
                self.store, address
            )

    # --- Exchange credentials ---

    def set_exchange_credentials(
        self, exchange: Exchange, credentials: ExchangeCredentials
    ) -> bool:
        return credential_manager.set_exchange_credentials(exchange, credentials)

    def get_exchange_credentials(self, exchange: Exchange) -> ExchangeCredentials | None:
        return credential_manager.get_exchange_credentials(exchange)

    def clear_exchange_credentials(self, exchange: Exchange) -> bool:
        return credential_manager.clear_exchange_credentials(exchange)

    def get_configured_exchanges(self) -> dict[Exchange, ExchangeCredentials]:
        return credential_manager.get_configured_exchanges()
