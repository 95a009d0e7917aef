"""Test fixtures and sample data."""
from datetime import date
from decimal import Decimal

import pytest

from schemas.ledger import (
    EpochReward,
    Lot,
    LotAcquisition,
    NotAvailable,
    TrackedAccount,
    Transaction,
)
from services.ledger_service import LedgerService

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
EXCHANGE_DEPOSIT = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
RESERVE = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"


def acquisition(
    when: date,
    price: str,
    kind: EpochReward | Transaction | NotAvailable | None = None,
) -> LotAcquisition:
    """Build a LotAcquisition; kind defaults to NotAvailable."""
    return LotAcquisition(
        when=when,
        price=Decimal(price),
        kind=kind if kind is not None else NotAvailable(),
    )


def make_lot(
    lot_number: int,
    when: date,
    price: str,
    amount: int,
    kind: EpochReward | Transaction | NotAvailable | None = None,
) -> Lot:
    return Lot(
        lot_number=lot_number,
        acquisition=acquisition(when, price, kind),
        amount=amount,
    )


def make_account(
    address: str, lots: list[Lot], description: str = "", epoch: int = 100
) -> TrackedAccount:
    """Build a TrackedAccount whose balance matches its lots."""
    return TrackedAccount(
        address=address,
        description=description or address[:8],
        last_update_epoch=epoch,
        last_update_balance=sum(lot.amount for lot in lots),
        lots=lots,
    )


def ledger_total(ledger: LedgerService) -> int:
    """Sum every place lots can live by hand, independent of LedgerService.total_quantity."""
    accounts = sum(
        lot.amount for account in ledger.get_accounts().values() for lot in account.lots
    )
    transfers = sum(lot.amount for pt in ledger.pending_transfers() for lot in pt.lots)
    orders = sum(lot.amount for order in ledger.open_orders() for lot in order.lots)
    disposed = sum(dl.lot.amount for dl in ledger.disposed_lots())
    return accounts + transfers + orders + disposed


@pytest.fixture
def wallet_account(ledger: LedgerService) -> TrackedAccount:
    """A wallet with a 10-unit reserve lot (2020) and a 1000-unit lot (2021)."""
    account = make_account(
        WALLET,
        [
            make_lot(ledger.next_lot_number(), date(2020, 1, 1), "1", 10),
            make_lot(
                ledger.next_lot_number(),
                date(2021, 1, 1),
                "10",
                1000,
                EpochReward(epoch=150, slot=64_800_000),
            ),
        ],
        description="Main wallet",
    )
    ledger.add_account(account)
    return account


@pytest.fixture
def exchange_account(ledger: LedgerService) -> TrackedAccount:
    """An empty exchange deposit address."""
    account = make_account(EXCHANGE_DEPOSIT, [], description="Exchange deposit")
    ledger.add_account(account)
    return account


@pytest.fixture
def deposit_account(ledger: LedgerService) -> TrackedAccount:
    """An exchange deposit address holding 300 units in two lots."""
    account = make_account(
        EXCHANGE_DEPOSIT,
        [
            make_lot(ledger.next_lot_number(), date(2021, 3, 1), "15", 100),
            make_lot(ledger.next_lot_number(), date(2021, 6, 1), "30", 200),
        ],
        description="Exchange deposit",
    )
    ledger.add_account(account)
    return account


@pytest.fixture
def reserve_account(ledger: LedgerService) -> TrackedAccount:
    """A second tracked account with a single lot."""
    account = make_account(
        RESERVE,
        [make_lot(ledger.next_lot_number(), date(2020, 6, 1), "2", 50)],
        description="Reserve",
    )
    ledger.add_account(account)
    return account
