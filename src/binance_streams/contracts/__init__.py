"""Typed event contracts for Binance stream payloads."""

from binance_streams.contracts.events import (
    BookTickerEvent,
    MarginDataEvent,
    MarginDataEventType,
    MarkPriceEvent,
    StreamEnvelope,
    StreamEvent,
)

__all__ = [
    "BookTickerEvent",
    "MarginDataEvent",
    "MarginDataEventType",
    "MarkPriceEvent",
    "StreamEnvelope",
    "StreamEvent",
]
