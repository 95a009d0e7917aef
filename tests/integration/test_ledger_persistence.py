"""Integration tests for a ledger stored in a SQLite file."""

from datetime import date
from decimal import Decimal

import pytest

from schemas.exchange import Exchange
from schemas.ledger import EpochReward, Exact
from services.exceptions import AccountDoesNotExist
from services.ledger_service import LEDGER_DB_FILENAME, LedgerService
from tests.fixtures import EXCHANGE_DEPOSIT, WALLET, acquisition, make_account, make_lot


@pytest.fixture
def ledger_dir(tmp_path):
    return tmp_path / "ledger"


@pytest.fixture
def seeded(ledger_dir):
    ledger = LedgerService.open(ledger_dir)
    with ledger.batch():
        ledger.add_account(
            make_account(
                WALLET,
                [
                    make_lot(ledger.next_lot_number(), date(2021, 1, 1), "10", 600),
                    make_lot(ledger.next_lot_number(), date(2021, 6, 1), "35", 400),
                ],
            )
        )
        ledger.add_account(make_account(EXCHANGE_DEPOSIT, []))
    return ledger


class TestOpen:
    def test_creates_directory_and_database(self, ledger_dir):
        ledger = LedgerService.open(ledger_dir)

        assert (ledger_dir / LEDGER_DB_FILENAME).exists()
        assert ledger.get_accounts() == {}
        assert ledger.next_lot_number() == 0

    def test_reopen_sees_accounts(self, ledger_dir, seeded):
        reopened = LedgerService.open(ledger_dir)

        assert reopened.get_accounts() == seeded.get_accounts()
        assert reopened.next_lot_number() == 2


class TestDurability:
    def test_full_lifecycle_survives_reopen(self, ledger_dir, seeded):
        seeded.record_deposit("dep1", WALLET, 700, Exchange.FTX_US, EXCHANGE_DEPOSIT)
        seeded.confirm_deposit("dep1")
        account = seeded.get_account(EXCHANGE_DEPOSIT)
        seeded.record_order(
            account, Exchange.FTX_US, "SOL/USD", "o1", seeded.extract_lots(account, 500)
        )
        seeded.add_lot(
            WALLET, acquisition(date(2022, 2, 1), "100", EpochReward(epoch=280, slot=9)), 25
        )

        reopened = LedgerService.open(ledger_dir)

        assert reopened.total_quantity() == 1025
        assert reopened.get_account(WALLET).last_update_balance == 325
        assert reopened.get_account(EXCHANGE_DEPOSIT).last_update_balance == 200
        assert [o.order_id for o in reopened.open_orders()] == ["o1"]
        assert reopened.pending_deposits() == []

        reopened.confirm_order("o1", Decimal("95"), date(2022, 3, 1))

        final = LedgerService.open(ledger_dir)
        assert sum(d.lot.amount for d in final.disposed_lots()) == 500
        assert final.open_orders() == []
        assert final.total_quantity() == 1025

    def test_failed_operation_not_persisted(self, ledger_dir, seeded):
        with pytest.raises(AccountDoesNotExist):
            with seeded.batch():
                seeded.record_transfer("t1", WALLET, Exact(quantity=100), EXCHANGE_DEPOSIT)
                seeded.confirm_transfer("t1")
                seeded.record_transfer("t2", WALLET, Exact(quantity=100), "nobody")

        reopened = LedgerService.open(ledger_dir)
        assert reopened.get_account(WALLET).last_update_balance == 1000
        assert reopened.get_account(EXCHANGE_DEPOSIT).last_update_balance == 0
        assert reopened.pending_transfers() == []
        # The in-memory view is reloaded as well
        assert seeded.get_account(WALLET).last_update_balance == 1000
