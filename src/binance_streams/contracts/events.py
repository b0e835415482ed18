"""
Typed event payloads pushed by Binance WebSocket streams.

Field names follow Python conventions; aliases are the single-letter codes
used on the wire. Prices and quantities stay as exchange decimal strings.
Unknown fields are ignored so new exchange fields do not break decoding.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field


class MarginDataEventType(str, Enum):
    """Event types pushed on the margin user data stream."""

    USER_LIABILITY_CHANGE = "USER_LIABILITY_CHANGE"
    MARGIN_LEVEL_STATUS_CHANGE = "MARGIN_LEVEL_STATUS_CHANGE"


class StreamEvent(BaseModel):
    """Base for exchange push events."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_json(self) -> bytes:
        """Serialize to wire-format JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json", by_alias=True))

    @classmethod
    def from_json(cls, data: bytes | str) -> Any:
        """Deserialize from wire-format JSON."""
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))


class BookTickerEvent(StreamEvent):
    """
    Best bid/ask update.

    Wire example:
        {"e":"bookTicker","u":400900217,"E":1568014460893,"T":1568014460891,
         "s":"BNBUSDT","b":"25.35190000","B":"31.21000000",
         "a":"25.36520000","A":"40.66000000"}
    """

    event_type: str = Field(default="bookTicker", alias="e")
    update_id: int = Field(..., alias="u")
    time: int = Field(default=0, ge=0, alias="E")
    transaction_time: int = Field(default=0, ge=0, alias="T")
    symbol: str = Field(..., min_length=1, alias="s")
    best_bid_price: str = Field(..., alias="b")
    best_bid_qty: str = Field(..., alias="B")
    best_ask_price: str = Field(..., alias="a")
    best_ask_qty: str = Field(..., alias="A")


class MarkPriceEvent(StreamEvent):
    """
    Mark price and funding rate update.

    Wire example:
        {"e":"markPriceUpdate","E":1562305380000,"s":"BTCUSDT",
         "p":"11794.15000000","i":"11784.62659091","P":"11784.25641265",
         "r":"0.00038167","T":1562306400000}
    """

    event_type: str = Field(default="markPriceUpdate", alias="e")
    time: int = Field(..., ge=0, alias="E")
    symbol: str = Field(..., min_length=1, alias="s")
    mark_price: str = Field(..., alias="p")
    index_price: str = Field(default="", alias="i")
    estimated_settle_price: str = Field(default="", alias="P")
    funding_rate: str = Field(default="", alias="r")
    next_funding_time: int = Field(default=0, ge=0, alias="T")


class MarginDataEvent(StreamEvent):
    """
    Margin account event (liability change, margin level status change).

    ``event_type`` is a MarginDataEventType for known events and the raw
    string for anything the exchange adds later.
    """

    event_type: MarginDataEventType | str = Field(..., alias="e", union_mode="left_to_right")
    time: int = Field(..., ge=0, alias="E")
    asset: str = Field(default="", alias="a")
    type: str = Field(default="", alias="t")
    principal: str = Field(default="", alias="p")
    interest: str = Field(default="", alias="i")


class StreamEnvelope(BaseModel):
    """Combined-stream wrapper: {"stream": "<name>", "data": {...}}."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    stream: str = Field(..., min_length=1)
    data: Any
