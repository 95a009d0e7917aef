"""Pydantic schemas for the lot ledger records.

Every record here is stored as JSON in the ledger document store and
re-validated on load, so instances handed out by the ledger are always
fresh copies.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from schemas.exchange import Exchange

LAMPORTS_PER_SOL = 1_000_000_000


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert a lamport quantity to whole SOL."""
    return Decimal(lamports) / LAMPORTS_PER_SOL


# --- Acquisition ---


class EpochReward(BaseModel):
    """Lot received as a staking reward at the end of an epoch. Counts as income."""

    model_config = ConfigDict(frozen=True)

    type: Literal["epoch_reward"] = "epoch_reward"
    epoch: int
    slot: int

    def __str__(self) -> str:
        return f"epoch {self.epoch} reward"


class Transaction(BaseModel):
    """Lot received through an on-chain transfer. Not new income."""

    model_config = ConfigDict(frozen=True)

    type: Literal["transaction"] = "transaction"
    slot: int
    signature: str

    def __str__(self) -> str:
        return self.signature


class NotAvailable(BaseModel):
    """Lot of unknown provenance, treated as income."""

    model_config = ConfigDict(frozen=True)

    type: Literal["not_available"] = "not_available"

    def __str__(self) -> str:
        return "other"


LotAcquisitionKind = Annotated[
    Union[EpochReward, Transaction, NotAvailable],
    Field(discriminator="type"),
]


class LotAcquisition(BaseModel):
    """When, at what price (USD per SOL) and how a lot was acquired.

    Two lots with equal acquisitions are interchangeable and get merged.
    """

    model_config = ConfigDict(frozen=True)

    when: date
    price: Decimal
    kind: LotAcquisitionKind


class Lot(BaseModel):
    """A quantity of lamports sharing one acquisition."""

    lot_number: int
    acquisition: LotAcquisition
    amount: int = Field(ge=0)  # lamports

    def income(self) -> Decimal:
        """Income (USD) this lot incurred when it was acquired."""
        if isinstance(self.acquisition.kind, Transaction):
            return Decimal("0")
        return self.acquisition.price * lamports_to_sol(self.amount)

    def cap_gain(self, current_price: Decimal) -> Decimal:
        """Unrealized gain/loss (USD) at ``current_price``."""
        return (current_price - self.acquisition.price) * lamports_to_sol(self.amount)


# --- Disposal ---


class Usd(BaseModel):
    """Lot sold for USD on an exchange."""

    model_config = ConfigDict(frozen=True)

    type: Literal["usd"] = "usd"
    exchange: Exchange
    pair: str
    order_id: str

    def __str__(self) -> str:
        return f"{self.exchange.value} {self.pair}, order {self.order_id}"


class DisposedLot(BaseModel):
    """A lot that left the ledger through a filled sale. Never modified."""

    model_config = ConfigDict(frozen=True)

    lot: Lot
    when: date
    price: Decimal  # USD per SOL
    kind: Usd

    def cap_gain(self) -> Decimal:
        """Realized gain/loss (USD) of the sale."""
        return self.lot.cap_gain(self.price)


# --- Accounts ---


class TrackedAccount(BaseModel):
    """An address whose lots the ledger tracks.

    ``last_update_balance`` must always equal the sum of the lot amounts.
    """

    address: str
    description: str
    last_update_epoch: int
    last_update_balance: int = Field(ge=0)
    lots: list[Lot] = []

    def lot_balance(self) -> int:
        return total_amount(self.lots)


class SweepStakeAccount(BaseModel):
    """The stake account that rewards get swept into."""

    address: str
    stake_authority: Path


class TransitorySweepStake(BaseModel):
    """A temporary stake account used while sweeping."""

    address: str


# --- Pending records ---


class PendingDeposit(BaseModel):
    """An exchange deposit awaiting confirmation."""

    signature: str
    exchange: Exchange
    amount: int


class PendingTransfer(BaseModel):
    """Lots in flight between two tracked accounts, owned by neither."""

    signature: str
    from_address: str
    to_address: str
    lots: list[Lot]


class OpenOrder(BaseModel):
    """Lots placed for sale on an exchange, owned by no account while open."""

    exchange: Exchange
    pair: str
    order_id: str
    lots: list[Lot]
    deposit_address: str


class OrderFill(BaseModel):
    """Price (USD per SOL) and date an open order was filled at."""

    price: Decimal
    when: date


# --- Transfer amounts ---


class Exact(BaseModel):
    """Move exactly ``quantity`` lamports."""

    quantity: int = Field(ge=0)

    def resolve(self, balance: int) -> int:
        return self.quantity


class EntireBalance(BaseModel):
    """Move the source account's whole balance."""

    def resolve(self, balance: int) -> int:
        return balance


TransferAmount = Union[Exact, EntireBalance]


def total_amount(lots: list[Lot]) -> int:
    """Sum of lot amounts."""
    return sum(lot.amount for lot in lots)
