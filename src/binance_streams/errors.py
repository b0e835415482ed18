"""
Error taxonomy for Binance stream subscriptions.

- ConfigurationError: invalid kind/symbol/rate combination, raised synchronously
  before any connection attempt
- ConnectError: transport dial failure, terminal for the session
- DecodeError: one malformed frame, recoverable
- TransportError: read failure after a successful open, terminal
- HandlerError: caller handler raised while processing a frame, recoverable

Post-construction errors are delivered to the caller's error handler, never
raised through the subscription handle.
"""

from __future__ import annotations


class StreamError(Exception):
    """Base class for all streaming errors."""


class ConfigurationError(StreamError, ValueError):
    """Raised when a subscription cannot be built from the given arguments."""


class ConnectError(StreamError):
    """Raised when the transport fails to open a connection."""

    def __init__(self, message: str, endpoint: str = "") -> None:
        super().__init__(message)
        self.endpoint = endpoint


class TransportError(StreamError):
    """Raised when an open connection fails while reading frames."""

    def __init__(self, message: str, close_code: int | None = None) -> None:
        super().__init__(message)
        self.close_code = close_code


class DecodeError(StreamError):
    """Raised when a frame cannot be decoded into the expected event shape."""

    def __init__(self, message: str, kind: str = "", frame: bytes = b"") -> None:
        super().__init__(message)
        self.kind = kind
        # Keep a short preview only; frames can be large (all-symbol feeds)
        self.preview = frame[:200]


class HandlerError(StreamError):
    """Wraps an exception raised by a caller-supplied event handler."""


class APIError(Exception):
    """Raised when a REST round trip returns an error status."""

    def __init__(self, status: int, code: int | None = None, message: str = "") -> None:
        super().__init__(f"<APIError> status={status} code={code}, msg={message}")
        self.status = status
        self.code = code
        self.message = message
