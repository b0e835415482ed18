"""
Types and configuration for Binance WebSocket streams.

Stream endpoints:
- Single stream: <base>/ws/<symbol>@<suffix>
- Combined streams: <base>/stream?streams=<a>/<b>/...
- All-market streams: <base>/ws/!<suffix>@arr
- Margin user data: <margin base>/ws/<listenKey>
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from binance_streams.errors import ConfigurationError

# Mark price cadences accepted by the exchange. The default cadence has no
# path marker; the fast cadence appends "@1s".
RATE_DEFAULT = timedelta(seconds=3)
RATE_FAST = timedelta(seconds=1)


class StreamKind(str, Enum):
    """Binance WebSocket stream kinds."""

    BOOK_TICKER = "bookTicker"  # Best bid/ask
    MARK_PRICE = "markPrice"  # Mark price and funding rate
    MARGIN_DATA = "marginData"  # Margin account events, addressed by listen key

    @property
    def supports_rate(self) -> bool:
        """Whether the kind accepts an update-rate qualifier."""
        return self is StreamKind.MARK_PRICE

    @property
    def supports_all_symbols(self) -> bool:
        """Whether the kind has an all-market "!<suffix>@arr" feed."""
        return self is StreamKind.MARK_PRICE


class SessionState(str, Enum):
    """Subscription session state."""

    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    DRAINING = "DRAINING"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class StreamConfig:
    """
    Immutable configuration shared by all sessions of a StreamService.

    Attributes:
        base_ws_url: WebSocket base URL for USD-M futures market streams.
        margin_ws_url: WebSocket base URL for margin user data streams.
        base_rest_url: REST base URL for listen key management.
        heartbeat_s: Interval for transport-level ping frames.
        connect_timeout_s: Upper bound for a single dial attempt.
        close_timeout_s: Upper bound for releasing a connection while draining.
        request_timeout_ms: REST request timeout.
    """

    base_ws_url: str = "wss://fstream.binance.com"
    margin_ws_url: str = "wss://margin-stream.binance.com"
    base_rest_url: str = "https://api.binance.com"
    heartbeat_s: float = 30.0
    connect_timeout_s: float = 10.0
    close_timeout_s: float = 5.0
    request_timeout_ms: int = 10000

    def __post_init__(self) -> None:
        for name in ("base_ws_url", "margin_ws_url"):
            url = getattr(self, name)
            if not url.startswith(("ws://", "wss://")):
                raise ConfigurationError(f"{name} must be a ws:// or wss:// URL, got {url!r}")
        if not self.base_rest_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"base_rest_url must be an http(s) URL, got {self.base_rest_url!r}"
            )
        for name in ("heartbeat_s", "connect_timeout_s", "close_timeout_s"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.request_timeout_ms <= 0:
            raise ConfigurationError("request_timeout_ms must be positive")

    @classmethod
    def testnet(cls) -> StreamConfig:
        """Configuration pointing at the futures testnet."""
        return cls(
            base_ws_url="wss://stream.binancefuture.com",
            base_rest_url="https://testnet.binance.vision",
        )


@dataclass(frozen=True)
class Endpoint:
    """
    A fully built stream endpoint.

    Attributes:
        url: Transport URL. May embed a listen key, so it is kept out of repr.
        kind: Stream kind the endpoint serves.
        streams: Stream names carried by the connection, in request order.
        combined: Frames arrive wrapped in a {"stream", "data"} envelope.
        many: Frames carry a JSON array of events (all-market feeds).
        label: Log-safe description of the endpoint.
    """

    url: str = field(repr=False)
    kind: StreamKind
    streams: tuple[str, ...] = field(repr=False)
    combined: bool = False
    many: bool = False
    label: str = ""
