"""
Stream service - public entry points for Binance WebSocket subscriptions.

Every entry point:
1. Builds the endpoint (ConfigurationError is raised here, synchronously)
2. Starts an independent session with its own connection
3. Returns the SubscriptionHandle immediately

Typed entry points deliver pydantic events; raw entry points deliver the
frame bytes exactly as received.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING

from binance_streams.streams import endpoints
from binance_streams.streams.decoder import FrameDecoder
from binance_streams.streams.session import ErrorHandler, EventHandler, SubscriptionSession
from binance_streams.streams.transport import AiohttpTransport, TransportFactory
from binance_streams.streams.types import Endpoint, StreamConfig, StreamKind

if TYPE_CHECKING:
    from binance_streams.exporter import StreamMetricsExporter
    from binance_streams.streams.signals import SubscriptionHandle

logger = logging.getLogger(__name__)


class StreamService:
    """
    Facade over endpoint building and subscription sessions.

    No connection pooling: two calls for the same endpoint open two
    connections. The only state shared between sessions is the immutable
    StreamConfig.
    """

    def __init__(
        self,
        config: StreamConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
        exporter: StreamMetricsExporter | None = None,
    ) -> None:
        """
        Initialize the stream service.

        Args:
            config: Stream configuration (hosts, timeouts).
            transport_factory: Builds one transport per session. Defaults to aiohttp.
            exporter: Optional Prometheus exporter shared by all sessions.
        """
        self._config = config or StreamConfig()
        self._transport_factory = transport_factory or self._default_transport
        self._exporter = exporter
        self._lock = threading.Lock()
        self._sessions: list[SubscriptionSession] = []

    @property
    def config(self) -> StreamConfig:
        return self._config

    def _default_transport(self) -> AiohttpTransport:
        return AiohttpTransport(self._config)

    # --- book ticker ---

    def book_ticker(
        self, symbol: str, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        """Subscribe to one symbol's best bid/ask; handler gets BookTickerEvent."""
        endpoint = endpoints.single_endpoint(self._config, StreamKind.BOOK_TICKER, symbol)
        return self._serve(endpoint, handler, error_handler)

    def raw_book_ticker(
        self, symbol: str, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.single_endpoint(self._config, StreamKind.BOOK_TICKER, symbol)
        return self._serve(endpoint, handler, error_handler, raw=True)

    def combined_book_ticker(
        self, symbols: Sequence[str], handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        """
        Subscribe to several symbols' best bid/ask over one connection.

        The handler receives the unwrapped BookTickerEvent; the envelope's
        stream name is not passed on (the event carries its symbol).
        """
        endpoint = endpoints.combined_endpoint(self._config, StreamKind.BOOK_TICKER, symbols)
        return self._serve(endpoint, handler, error_handler)

    def combined_raw_book_ticker(
        self, symbols: Sequence[str], handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.combined_endpoint(self._config, StreamKind.BOOK_TICKER, symbols)
        return self._serve(endpoint, handler, error_handler, raw=True)

    # --- mark price ---

    def mark_price(
        self,
        symbol: str,
        handler: EventHandler,
        error_handler: ErrorHandler,
        rate: timedelta | None = None,
    ) -> SubscriptionHandle:
        """Subscribe to one symbol's mark price; handler gets MarkPriceEvent."""
        endpoint = endpoints.single_endpoint(self._config, StreamKind.MARK_PRICE, symbol, rate)
        return self._serve(endpoint, handler, error_handler)

    def raw_mark_price(
        self,
        symbol: str,
        handler: EventHandler,
        error_handler: ErrorHandler,
        rate: timedelta | None = None,
    ) -> SubscriptionHandle:
        endpoint = endpoints.single_endpoint(self._config, StreamKind.MARK_PRICE, symbol, rate)
        return self._serve(endpoint, handler, error_handler, raw=True)

    def combined_mark_price(
        self, symbols: Sequence[str], handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.combined_endpoint(self._config, StreamKind.MARK_PRICE, symbols)
        return self._serve(endpoint, handler, error_handler)

    def combined_raw_mark_price(
        self, symbols: Sequence[str], handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.combined_endpoint(self._config, StreamKind.MARK_PRICE, symbols)
        return self._serve(endpoint, handler, error_handler, raw=True)

    def combined_mark_price_with_rate(
        self,
        symbol_rates: Mapping[str, timedelta],
        handler: EventHandler,
        error_handler: ErrorHandler,
    ) -> SubscriptionHandle:
        """
        Subscribe to several symbols' mark price, each at its own rate.

        Args:
            symbol_rates: Symbol -> RATE_DEFAULT or RATE_FAST, in path order.
            handler: Receives MarkPriceEvent.
            error_handler: Receives post-construction failures.

        Raises:
            ConfigurationError: If the mapping is empty or any rate is unsupported.
        """
        endpoint = endpoints.combined_endpoint_with_rates(
            self._config, StreamKind.MARK_PRICE, symbol_rates
        )
        return self._serve(endpoint, handler, error_handler)

    def combined_raw_mark_price_with_rate(
        self,
        symbol_rates: Mapping[str, timedelta],
        handler: EventHandler,
        error_handler: ErrorHandler,
    ) -> SubscriptionHandle:
        endpoint = endpoints.combined_endpoint_with_rates(
            self._config, StreamKind.MARK_PRICE, symbol_rates
        )
        return self._serve(endpoint, handler, error_handler, raw=True)

    def all_mark_price(
        self, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        """Subscribe to every symbol's mark price; handler gets list[MarkPriceEvent]."""
        endpoint = endpoints.all_symbols_endpoint(self._config, StreamKind.MARK_PRICE)
        return self._serve(endpoint, handler, error_handler)

    def all_mark_price_with_rate(
        self, rate: timedelta, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.all_symbols_endpoint_with_rate(
            self._config, StreamKind.MARK_PRICE, rate
        )
        return self._serve(endpoint, handler, error_handler)

    def all_raw_mark_price(
        self, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.all_symbols_endpoint(self._config, StreamKind.MARK_PRICE)
        return self._serve(endpoint, handler, error_handler, raw=True)

    def all_raw_mark_price_with_rate(
        self, rate: timedelta, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.all_symbols_endpoint_with_rate(
            self._config, StreamKind.MARK_PRICE, rate
        )
        return self._serve(endpoint, handler, error_handler, raw=True)

    # --- margin user data ---

    def margin_data(
        self, listen_key: str, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        """
        Subscribe to margin account events.

        The listen key comes from MarginListenKeyService.start() and must be
        kept alive by the caller.
        """
        endpoint = endpoints.margin_data_endpoint(self._config, listen_key)
        return self._serve(endpoint, handler, error_handler)

    def raw_margin_data(
        self, listen_key: str, handler: EventHandler, error_handler: ErrorHandler
    ) -> SubscriptionHandle:
        endpoint = endpoints.margin_data_endpoint(self._config, listen_key)
        return self._serve(endpoint, handler, error_handler, raw=True)

    # --- lifecycle ---

    def close_all(self) -> None:
        """Request shutdown of every session started by this service."""
        with self._lock:
            sessions = list(self._sessions)
        for session in sessions:
            session.handle.close()

    def wait_all(self, timeout: float | None = None) -> bool:
        """
        Wait for every session to close.

        Returns:
            False if the timeout expired before all sessions closed.
        """
        with self._lock:
            sessions = list(self._sessions)
        deadline = None if timeout is None else time.monotonic() + timeout
        for session in sessions:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not session.handle.wait(remaining):
                return False
        return True

    def _serve(
        self,
        endpoint: Endpoint,
        handler: EventHandler,
        error_handler: ErrorHandler,
        *,
        raw: bool = False,
    ) -> SubscriptionHandle:
        session = SubscriptionSession(
            endpoint,
            FrameDecoder.for_endpoint(endpoint, raw=raw),
            handler,
            error_handler,
            self._transport_factory,
            config=self._config,
            exporter=self._exporter,
        )
        with self._lock:
            # Forget sessions that already finished
            self._sessions = [s for s in self._sessions if not s.handle.done.is_closed]
            self._sessions.append(session)

        logger.info(
            "Starting subscription",
            extra={"stream": endpoint.label, "kind": endpoint.kind.value, "raw": raw},
        )
        return session.start()
