"""
Binance WebSocket stream subscriptions.

- Endpoint builder for single, combined and all-market feeds
- Frame decoder producing typed events (or raw bytes)
- One thread-backed session per subscription, with done/stop signals
"""

from binance_streams.streams.decoder import FrameDecoder
from binance_streams.streams.service import StreamService
from binance_streams.streams.session import SessionMetrics, SubscriptionSession
from binance_streams.streams.signals import Signal, SubscriptionHandle
from binance_streams.streams.transport import AiohttpTransport, Connection, Transport
from binance_streams.streams.types import (
    RATE_DEFAULT,
    RATE_FAST,
    Endpoint,
    SessionState,
    StreamConfig,
    StreamKind,
)

__all__ = [
    "RATE_DEFAULT",
    "RATE_FAST",
    "AiohttpTransport",
    "Connection",
    "Endpoint",
    "FrameDecoder",
    "SessionMetrics",
    "SessionState",
    "Signal",
    "StreamConfig",
    "StreamKind",
    "StreamService",
    "SubscriptionHandle",
    "SubscriptionSession",
    "Transport",
]
