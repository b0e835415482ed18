"""
binance-streams: typed Binance WebSocket stream subscriptions.

Usage:
    from binance_streams import StreamService

    service = StreamService()
    handle = service.combined_book_ticker(["BTCUSDT", "ETHUSDT"], print, print)
    ...
    handle.stop.close()
    handle.done.wait()
"""

from binance_streams.contracts.events import (
    BookTickerEvent,
    MarginDataEvent,
    MarginDataEventType,
    MarkPriceEvent,
)
from binance_streams.errors import (
    APIError,
    ConfigurationError,
    ConnectError,
    DecodeError,
    HandlerError,
    StreamError,
    TransportError,
)
from binance_streams.exporter import StreamMetricsExporter
from binance_streams.rest.client import MarginListenKeyService, RestClient
from binance_streams.streams import (
    RATE_DEFAULT,
    RATE_FAST,
    SessionState,
    StreamConfig,
    StreamKind,
    StreamService,
    SubscriptionHandle,
)

__all__ = [
    "RATE_DEFAULT",
    "RATE_FAST",
    "APIError",
    "BookTickerEvent",
    "ConfigurationError",
    "ConnectError",
    "DecodeError",
    "HandlerError",
    "MarginDataEvent",
    "MarginDataEventType",
    "MarginListenKeyService",
    "MarkPriceEvent",
    "RestClient",
    "SessionState",
    "StreamConfig",
    "StreamError",
    "StreamKind",
    "StreamMetricsExporter",
    "StreamService",
    "SubscriptionHandle",
]
