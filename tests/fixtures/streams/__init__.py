"""In-memory transport and recording handlers for stream session tests."""

from tests.fixtures.streams.fake_transport import (
    FakeConnection,
    FakeTransport,
    Recorder,
    StubbornConnection,
    book_ticker_payload,
    mark_price_payload,
)

__all__ = [
    "FakeConnection",
    "FakeTransport",
    "Recorder",
    "StubbornConnection",
    "book_ticker_payload",
    "mark_price_payload",
]
