"""Tests for the transfer lifecycle."""

from datetime import date

import pytest

from database import get_session_local
from schemas.ledger import EntireBalance, Exact
from services.document_store import DocumentStore
from services.exceptions import (
    AccountDoesNotExist,
    AccountHasInsufficientBalance,
    PendingTransferAlreadyExists,
    PendingTransferDoesNotExist,
)
from services.ledger_service import LedgerService
from services.transfer_service import TransferService
from tests.fixtures import EXCHANGE_DEPOSIT, WALLET, ledger_total


class TestRecordTransfer:
    def test_lots_leave_source(self, ledger, wallet_account, exchange_account):
        transfer = ledger.record_transfer("sig1", WALLET, Exact(quantity=500), EXCHANGE_DEPOSIT)

        assert transfer.from_address == WALLET
        assert transfer.to_address == EXCHANGE_DEPOSIT
        assert [lot.amount for lot in transfer.lots] == [500]
        assert transfer.lots[0].acquisition.when == date(2021, 1, 1)
        assert transfer.lots[0].lot_number == 2

        wallet = ledger.get_account(WALLET)
        assert wallet.last_update_balance == 510
        assert [lot.amount for lot in wallet.lots] == [10, 500]
        assert ledger.get_account(EXCHANGE_DEPOSIT).last_update_balance == 0
        assert ledger.pending_transfers() == [transfer]
        assert ledger_total(ledger) == 1010

    def test_entire_balance(self, ledger, wallet_account, exchange_account):
        transfer = ledger.record_transfer("sig1", WALLET, EntireBalance(), EXCHANGE_DEPOSIT)

        assert sum(lot.amount for lot in transfer.lots) == 1010
        assert sorted(lot.lot_number for lot in transfer.lots) == [0, 1]
        wallet = ledger.get_account(WALLET)
        assert wallet.last_update_balance == 0
        assert wallet.lots == []

    def test_unknown_source(self, ledger, exchange_account):
        with pytest.raises(AccountDoesNotExist, match="nobody"):
            ledger.record_transfer("sig1", "nobody", Exact(quantity=1), EXCHANGE_DEPOSIT)
        assert ledger.pending_transfers() == []

    def test_unknown_destination(self, ledger, wallet_account):
        with pytest.raises(AccountDoesNotExist, match="nobody"):
            ledger.record_transfer("sig1", WALLET, Exact(quantity=1), "nobody")
        assert ledger.get_account(WALLET) == wallet_account
        assert ledger.pending_transfers() == []

    def test_insufficient_balance(self, ledger, wallet_account, exchange_account):
        with pytest.raises(AccountHasInsufficientBalance):
            ledger.record_transfer("sig1", WALLET, Exact(quantity=1011), EXCHANGE_DEPOSIT)
        assert ledger.get_account(WALLET) == wallet_account
        assert ledger.pending_transfers() == []

    def test_duplicate_signature(self, ledger, wallet_account, exchange_account):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=100), EXCHANGE_DEPOSIT)

        with pytest.raises(PendingTransferAlreadyExists):
            ledger.record_transfer("sig1", WALLET, Exact(quantity=100), EXCHANGE_DEPOSIT)

        assert ledger.get_account(WALLET).last_update_balance == 910
        assert len(ledger.pending_transfers()) == 1


class TestResolveTransfer:
    def test_confirm_credits_destination(self, ledger, wallet_account, exchange_account):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=500), EXCHANGE_DEPOSIT)

        ledger.confirm_transfer("sig1")

        exchange = ledger.get_account(EXCHANGE_DEPOSIT)
        assert exchange.last_update_balance == 500
        assert [lot.lot_number for lot in exchange.lots] == [2]
        assert ledger.get_account(WALLET).last_update_balance == 510
        assert ledger.pending_transfers() == []
        assert ledger_total(ledger) == 1010

    def test_cancel_restores_source(self, ledger, wallet_account, exchange_account):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=500), EXCHANGE_DEPOSIT)

        ledger.cancel_transfer("sig1")

        assert ledger.get_account(WALLET) == wallet_account
        assert ledger.get_account(EXCHANGE_DEPOSIT).last_update_balance == 0
        assert ledger.pending_transfers() == []

    def test_cancel_entire_balance_restores_source(
        self, ledger, wallet_account, exchange_account
    ):
        ledger.record_transfer("sig1", WALLET, EntireBalance(), EXCHANGE_DEPOSIT)

        ledger.cancel_transfer("sig1")

        wallet = ledger.get_account(WALLET)
        assert wallet.last_update_balance == 1010
        assert sorted(lot.lot_number for lot in wallet.lots) == [0, 1]

    def test_only_matching_transfer_resolved(self, ledger, wallet_account, exchange_account):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=100), EXCHANGE_DEPOSIT)
        ledger.record_transfer("sig2", WALLET, Exact(quantity=200), EXCHANGE_DEPOSIT)

        ledger.confirm_transfer("sig2")

        assert [pt.signature for pt in ledger.pending_transfers()] == ["sig1"]
        assert ledger.get_account(EXCHANGE_DEPOSIT).last_update_balance == 200

    def test_unknown_signature(self, ledger):
        with pytest.raises(PendingTransferDoesNotExist) as exc_info:
            ledger.confirm_transfer("missing")
        assert exc_info.value.signature == "missing"

    def test_resolve_twice(self, ledger, wallet_account, exchange_account):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=100), EXCHANGE_DEPOSIT)
        ledger.confirm_transfer("sig1")

        with pytest.raises(PendingTransferDoesNotExist):
            ledger.cancel_transfer("sig1")
        assert ledger.get_account(EXCHANGE_DEPOSIT).last_update_balance == 100

    def test_destination_removed_keeps_transfer_pending(
        self, ledger, wallet_account, exchange_account
    ):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=100), EXCHANGE_DEPOSIT)
        ledger.remove_account(EXCHANGE_DEPOSIT)

        with pytest.raises(AccountDoesNotExist):
            ledger.confirm_transfer("sig1")
        assert [pt.signature for pt in ledger.pending_transfers()] == ["sig1"]

    def test_resolution_is_durable(self, engine, ledger, wallet_account, exchange_account):
        ledger.record_transfer("sig1", WALLET, Exact(quantity=500), EXCHANGE_DEPOSIT)
        ledger.confirm_transfer("sig1")

        reopened = LedgerService(DocumentStore(get_session_local(engine)))
        assert reopened.get_account(EXCHANGE_DEPOSIT).last_update_balance == 500
        assert reopened.get_account(WALLET).last_update_balance == 510
        assert reopened.pending_transfers() == []


class TestTransferServiceDirect:
    def test_service_does_not_flush(self, engine, store, ledger, wallet_account, exchange_account):
        TransferService.record_transfer(
            store, "sig1", WALLET, Exact(quantity=10), EXCHANGE_DEPOSIT
        )

        reopened = DocumentStore(get_session_local(engine))
        assert TransferService.pending_transfers(reopened) == []
        assert len(TransferService.pending_transfers(store)) == 1
