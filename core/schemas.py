"""
Normalized Data Schemas

This module defines Pydantic models for the ticker data relayed to subscribers.

Key Principle:
    The upstream exchange speaks its own event schema. It is mapped exactly once,
    by core.transformer, into the compact WireMessage envelope below. Everything
    downstream of the relay (subscribers, client stores, the REST snapshot view)
    works with these models only.

Models:
    - TickerPayload: Abbreviated-key payload of a price update (s, c, P, p, ...)
    - WireMessage: The {"type": "priceUpdate", "data": {...}} envelope
    - TickerSnapshot: Latest normalized 24h statistics for one symbol
    - PricePoint: One entry of the client-side price history
    - HealthStatus: Liveness probe response
"""

from datetime import datetime
from typing import Literal, Union
from pydantic import BaseModel, Field, ConfigDict


# Upstream values forwarded without reformatting keep whatever JSON type they arrived with
RawValue = Union[str, int, float]


# ============================================
# Wire Schemas (relay -> subscriber)
# ============================================

class TickerPayload(BaseModel):
    """
    Compact price update payload.

    Field names are descriptive in Python and abbreviated on the wire
    through aliases, so `model_dump(by_alias=True)` yields the exact
    wire shape:

        {"s": "BTC", "c": "65000", "P": "120.50", "p": "2.50",
         "v": "1000", "h": "66000", "l": "64000", "o": "64880", "n": 500}
    """

    symbol: str = Field(..., alias="s", description="Base asset (quote suffix stripped)")
    last_price: str = Field(..., alias="c", description="Last traded price")
    price_change: str = Field(..., alias="P", description="Absolute 24h change, 2 decimals")
    price_change_percent: str = Field(..., alias="p", description="Percent 24h change, 2 decimals")
    volume: RawValue = Field(..., alias="v", description="24h base asset volume")
    high_price: RawValue = Field(..., alias="h", description="24h high")
    low_price: RawValue = Field(..., alias="l", description="24h low")
    open_price: RawValue = Field(..., alias="o", description="24h open")
    trade_count: RawValue = Field(..., alias="n", description="24h trade count")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class WireMessage(BaseModel):
    """
    Envelope sent to every subscriber.

    Produced exclusively by core.transformer.transform_ticker and never
    mutated afterwards (frozen).
    """

    type: Literal["priceUpdate"] = "priceUpdate"
    data: TickerPayload

    model_config = ConfigDict(frozen=True)

    def to_json(self) -> str:
        """Serialize with abbreviated keys, ready to send as a text frame."""
        return self.model_dump_json(by_alias=True)


# ============================================
# Snapshot Schemas
# ============================================

class TickerSnapshot(BaseModel):
    """
    Latest 24h statistics for one symbol.

    Exactly one snapshot per symbol is kept by each store. A new update
    replaces the previous snapshot completely (last-write-wins, no merge).

    Attributes:
        symbol: Base asset (e.g., "BTC")
        last_price: Last traded price
        price_change: Absolute 24h change as provided by the exchange
        price_change_percent: Percent 24h change as provided by the exchange
        volume: 24h volume
        high_price: 24h high
        low_price: 24h low
        open_price: 24h open
        trade_count: Number of trades in the window
        timestamp: When the storing side received the update (UTC)
    """

    symbol: str
    last_price: str
    price_change: str
    price_change_percent: str
    volume: RawValue
    high_price: RawValue
    low_price: RawValue
    open_price: RawValue
    trade_count: RawValue
    timestamp: datetime = Field(..., description="Receipt time assigned by the storing side")

    model_config = ConfigDict(frozen=True)


class PricePoint(BaseModel):
    """One point of the bounded per-symbol price history used for charts."""

    price: float
    timestamp: int = Field(..., description="Receipt time in epoch milliseconds")
    time: str = Field(..., description="Receipt time as ISO-8601 UTC")

    model_config = ConfigDict(frozen=True)


# ============================================
# System Schemas
# ============================================

class HealthStatus(BaseModel):
    """Liveness probe response. Always OK while the process is up."""

    status: str = "OK"
    timestamp: str
    message: str = "CryptoPulse API is running"
