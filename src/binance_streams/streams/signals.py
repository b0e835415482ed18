"""
One-shot lifecycle signals and the subscription handle.

A Signal is closed at most once. Closing is thread-safe, idempotent and never
blocks; waiting is the only blocking operation. Callbacks let a session's
event loop wake up as soon as its stop signal is closed from another thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from binance_streams.streams.session import SessionMetrics, SubscriptionSession
    from binance_streams.streams.types import SessionState

logger = logging.getLogger(__name__)


class Signal:
    """Broadcast-close primitive: closes once, wakes every waiter."""

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f"Signal({self._name!r}, closed={self.is_closed})"

    @property
    def is_closed(self) -> bool:
        return self._event.is_set()

    def close(self) -> bool:
        """
        Close the signal.

        Returns:
            True if this call closed it, False if it was already closed.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Signal callback failed", extra={"signal": self._name})
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until closed. Returns False if the timeout expired first."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on close; runs immediately if already closed."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


class SubscriptionHandle:
    """
    Lifecycle handle returned for every subscription.

    Attributes:
        done: Closed once the receive loop has fully exited.
        stop: Close to request an orderly shutdown.
    """

    def __init__(self, session: SubscriptionSession, done: Signal, stop: Signal) -> None:
        self._session = session
        self.done = done
        self.stop = stop

    def __repr__(self) -> str:
        return f"SubscriptionHandle({self._session.endpoint.label!r}, state={self.state.value})"

    def __iter__(self):  # type: ignore[no-untyped-def]
        # Allows ``done, stop = service.book_ticker(...)``
        return iter((self.done, self.stop))

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def metrics(self) -> SessionMetrics:
        return self._session.get_metrics()

    @property
    def error(self) -> Exception | None:
        """Terminal error that ended the session, None if it was stopped."""
        return self._session.terminal_error

    def close(self) -> None:
        """Request shutdown without waiting."""
        self.stop.close()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the session to reach CLOSED."""
        return self.done.wait(timeout)
