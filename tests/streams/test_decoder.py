"""Tests for FrameDecoder."""

from __future__ import annotations

import orjson
import pytest

from binance_streams.contracts.events import (
    BookTickerEvent,
    MarginDataEvent,
    MarginDataEventType,
    MarkPriceEvent,
)
from binance_streams.errors import DecodeError
from binance_streams.streams import endpoints
from binance_streams.streams.decoder import FrameDecoder
from binance_streams.streams.types import StreamConfig, StreamKind
from tests.fixtures.streams import book_ticker_payload, mark_price_payload


class TestSingleFrames:
    """Unwrapped single-event frames."""

    def test_book_ticker(self) -> None:
        decoder = FrameDecoder(StreamKind.BOOK_TICKER)
        event = decoder.decode(orjson.dumps(book_ticker_payload("BNBUSDT", 400900217)))

        assert isinstance(event, BookTickerEvent)
        assert event.symbol == "BNBUSDT"
        assert event.update_id == 400900217
        assert event.best_bid_price == "25.35190000"
        assert event.best_ask_qty == "40.66000000"

    def test_mark_price(self) -> None:
        decoder = FrameDecoder(StreamKind.MARK_PRICE)
        event = decoder.decode(orjson.dumps(mark_price_payload("BTCUSDT", "11794.15000000")))

        assert isinstance(event, MarkPriceEvent)
        assert event.mark_price == "11794.15000000"
        assert event.funding_rate == "0.00038167"
        assert event.next_funding_time == 1562306400000

    def test_margin_data(self) -> None:
        decoder = FrameDecoder(StreamKind.MARGIN_DATA)
        frame = orjson.dumps(
            {
                "e": "USER_LIABILITY_CHANGE",
                "E": 1701949606000,
                "a": "BTC",
                "t": "BORROW",
                "p": "1.03453430",
                "i": "0",
            }
        )
        event = decoder.decode(frame)

        assert isinstance(event, MarginDataEvent)
        assert event.event_type is MarginDataEventType.USER_LIABILITY_CHANGE
        assert event.asset == "BTC"
        assert event.principal == "1.03453430"

    def test_unknown_margin_event_type_kept(self) -> None:
        decoder = FrameDecoder(StreamKind.MARGIN_DATA)
        event = decoder.decode(b'{"e":"SOMETHING_NEW","E":1}')

        assert event.event_type == "SOMETHING_NEW"
        assert not isinstance(event.event_type, MarginDataEventType)

    def test_unknown_fields_ignored(self) -> None:
        payload = book_ticker_payload()
        payload["x"] = "extra"
        event = FrameDecoder(StreamKind.BOOK_TICKER).decode(orjson.dumps(payload))
        assert event.symbol == "BTCUSDT"


class TestCombinedFrames:
    """Envelope-wrapped frames from combined endpoints."""

    def test_envelope_unwrapped(self) -> None:
        decoder = FrameDecoder(StreamKind.BOOK_TICKER, combined=True)
        frame = orjson.dumps(
            {"stream": "btcusdt@bookTicker", "data": book_ticker_payload("BTCUSDT", 7)}
        )
        event = decoder.decode(frame)

        assert isinstance(event, BookTickerEvent)
        assert event.update_id == 7

    def test_missing_envelope_is_decode_error(self) -> None:
        decoder = FrameDecoder(StreamKind.BOOK_TICKER, combined=True)

        with pytest.raises(DecodeError) as exc_info:
            decoder.decode(orjson.dumps(book_ticker_payload()))

        assert exc_info.value.kind == "bookTicker"

    def test_for_endpoint_matches_layout(self) -> None:
        endpoint = endpoints.combined_endpoint(
            StreamConfig(), StreamKind.MARK_PRICE, ["BTCUSDT", "ETHUSDT"]
        )
        decoder = FrameDecoder.for_endpoint(endpoint)
        frame = orjson.dumps({"stream": "ethusdt@markPrice", "data": mark_price_payload("ETHUSDT")})

        assert decoder.decode(frame).symbol == "ETHUSDT"


class TestArrayFrames:
    """All-market array frames."""

    def test_list_of_events(self) -> None:
        endpoint = endpoints.all_symbols_endpoint(StreamConfig(), StreamKind.MARK_PRICE)
        decoder = FrameDecoder.for_endpoint(endpoint)
        frame = orjson.dumps([mark_price_payload("BTCUSDT"), mark_price_payload("ETHUSDT")])

        events = decoder.decode(frame)

        assert [e.symbol for e in events] == ["BTCUSDT", "ETHUSDT"]
        assert all(isinstance(e, MarkPriceEvent) for e in events)

    def test_empty_array(self) -> None:
        decoder = FrameDecoder(StreamKind.MARK_PRICE, many=True)
        assert decoder.decode(b"[]") == []

    def test_object_where_array_expected(self) -> None:
        decoder = FrameDecoder(StreamKind.MARK_PRICE, many=True)
        with pytest.raises(DecodeError):
            decoder.decode(orjson.dumps(mark_price_payload()))


class TestRawMode:
    """Raw mode never decodes and never fails."""

    def test_passthrough(self) -> None:
        decoder = FrameDecoder(StreamKind.BOOK_TICKER, combined=True, raw=True)
        frame = orjson.dumps({"stream": "btcusdt@bookTicker", "data": book_ticker_payload()})

        assert decoder.raw is True
        assert decoder.decode(frame) is frame

    def test_garbage_passes_through(self) -> None:
        decoder = FrameDecoder(StreamKind.MARK_PRICE, raw=True)
        assert decoder.decode(b"\x00not json") == b"\x00not json"


class TestMalformedFrames:
    """Malformed frames become DecodeError carrying context."""

    def test_invalid_json(self) -> None:
        decoder = FrameDecoder(StreamKind.BOOK_TICKER)

        with pytest.raises(DecodeError, match="invalid JSON") as exc_info:
            decoder.decode(b"{not json")

        assert exc_info.value.kind == "bookTicker"
        assert exc_info.value.preview == b"{not json"

    def test_missing_required_field(self) -> None:
        payload = book_ticker_payload()
        del payload["s"]

        with pytest.raises(DecodeError, match="unexpected bookTicker frame shape"):
            FrameDecoder(StreamKind.BOOK_TICKER).decode(orjson.dumps(payload))

    def test_preview_is_truncated(self) -> None:
        frame = b"x" * 1000

        with pytest.raises(DecodeError) as exc_info:
            FrameDecoder(StreamKind.MARK_PRICE).decode(frame)

        assert len(exc_info.value.preview) == 200

    def test_bad_element_fails_whole_array(self) -> None:
        decoder = FrameDecoder(StreamKind.MARK_PRICE, many=True)
        frame = orjson.dumps([mark_price_payload(), {"e": "markPriceUpdate"}])

        with pytest.raises(DecodeError, match="1"):
            decoder.decode(frame)
