"""Lot splitting and merging.

Pure functions over lot collections, plus thin wrappers that apply them
to a :class:`~schemas.ledger.TrackedAccount` and keep its balance in step.
None of these touch the document store; new lot numbers come from the
``next_lot_number`` callable the caller passes in.
"""

import logging
from collections.abc import Callable
from datetime import date

from schemas.ledger import Lot, TrackedAccount, total_amount
from services.exceptions import AccountHasInsufficientBalance, LedgerInvariantError

logger = logging.getLogger(__name__)


def _acquired(lot: Lot) -> date:
    return lot.acquisition.when


def extract_lots(
    lots: list[Lot],
    amount: int,
    next_lot_number: Callable[[], int],
    address: str = "",
) -> tuple[list[Lot], list[Lot]]:
    """Take ``amount`` out of ``lots``.

    Newer lots are consumed first, oldest-date order, except that the
    single oldest lot is treated as the rent reserve and only touched as a
    last resort. The first lot that is larger than what is still needed is
    split: the extracted part gets a fresh lot number, the original keeps
    its number and the rest of its amount.

    Returns:
        ``(remaining, extracted)``, both sorted by acquisition date.

    Raises:
        AccountHasInsufficientBalance: ``amount`` exceeds the lot total.
    """
    available = total_amount(lots)
    if amount > available:
        raise AccountHasInsufficientBalance(address, amount, available)

    ordered = sorted(lots, key=_acquired)
    if ordered:
        ordered.append(ordered.pop(0))

    remaining: list[Lot] = []
    extracted: list[Lot] = []
    amount_remaining = amount
    for lot in ordered:
        if amount_remaining == 0:
            remaining.append(lot)
        elif lot.amount <= amount_remaining:
            amount_remaining -= lot.amount
            extracted.append(lot)
        else:
            split_lot = Lot(
                lot_number=next_lot_number(),
                acquisition=lot.acquisition,
                amount=amount_remaining,
            )
            logger.debug(
                "Split lot %d: %d extracted as lot %d, %d kept",
                lot.lot_number,
                amount_remaining,
                split_lot.lot_number,
                lot.amount - amount_remaining,
            )
            extracted.append(split_lot)
            remaining.append(lot.model_copy(update={"amount": lot.amount - amount_remaining}))
            amount_remaining = 0

    remaining.sort(key=_acquired)
    extracted.sort(key=_acquired)

    extracted_amount = total_amount(extracted)
    if extracted_amount != amount:
        raise LedgerInvariantError(
            f"Extracted {extracted_amount} instead of {amount} from {address or 'lots'}"
        )
    return remaining, extracted


def merge_lots(lots: list[Lot], incoming: list[Lot]) -> list[Lot]:
    """Add ``incoming`` lots to ``lots``.

    An incoming lot whose acquisition equals an existing lot's is folded
    into it; any other incoming lot is appended with its own lot number.
    """
    merged = [lot.model_copy() for lot in lots]
    for lot in incoming:
        existing = next(
            (m for m in merged if m.acquisition == lot.acquisition), None
        )
        if existing is not None:
            existing.amount += lot.amount
        else:
            merged.append(lot.model_copy())
    return merged


def assert_lot_balance(account: TrackedAccount) -> int:
    """Check that the account's lots add up to its balance.

    Raises:
        LedgerInvariantError: the lots and the balance disagree.
    """
    lot_balance = account.lot_balance()
    if lot_balance != account.last_update_balance:
        raise LedgerInvariantError(
            f"Lot balance mismatch for {account.address}: lots hold "
            f"{lot_balance}, balance is {account.last_update_balance}"
        )
    return lot_balance


def extract_account_lots(
    account: TrackedAccount,
    amount: int,
    next_lot_number: Callable[[], int],
) -> list[Lot]:
    """Remove ``amount`` from ``account`` in place and return the extracted lots."""
    assert_lot_balance(account)
    if account.last_update_balance < amount:
        raise AccountHasInsufficientBalance(
            account.address, amount, account.last_update_balance
        )

    account.lots, extracted = extract_lots(
        account.lots, amount, next_lot_number, account.address
    )
    account.last_update_balance -= amount
    assert_lot_balance(account)
    return extracted


def merge_account_lots(account: TrackedAccount, lots: list[Lot]) -> None:
    """Add ``lots`` to ``account`` in place."""
    account.lots = merge_lots(account.lots, lots)
    account.last_update_balance += total_amount(lots)
    assert_lot_balance(account)
