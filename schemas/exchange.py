"""Pydantic schemas for exchanges and their API credentials."""

from enum import Enum

from pydantic import BaseModel


class Exchange(str, Enum):
    """Exchanges the ledger can hold deposits and open orders on."""

    BINANCE = "binance"
    BINANCE_US = "binanceus"
    FTX = "ftx"
    FTX_US = "ftxus"

    def __str__(self) -> str:
        return self.value


class ExchangeCredentials(BaseModel):
    """API credentials for one exchange."""

    api_key: str
    secret: str
    subaccount: str | None = None
