"""
Subscription session - one live connection and its receive loop.

State machine: CONNECTING -> OPEN -> DRAINING -> CLOSED

- Each session runs on its own thread with its own asyncio event loop, so a
  slow handler stalls only its own session
- The loop races "next frame" against "stop"; no polling
- Frames reach the handler in transport receipt order
- Dial failures go straight to CLOSED; read failures drain then close
- The done signal closes exactly once, after the last callback invocation
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from binance_streams.errors import ConnectError, DecodeError, HandlerError, TransportError
from binance_streams.streams.signals import Signal, SubscriptionHandle
from binance_streams.streams.types import Endpoint, SessionState, StreamConfig

if TYPE_CHECKING:
    from binance_streams.exporter import StreamMetricsExporter
    from binance_streams.streams.decoder import FrameDecoder
    from binance_streams.streams.transport import Connection, Transport, TransportFactory

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]
ErrorHandler = Callable[[Exception], None]


@dataclass
class SessionMetrics:
    """
    Counters for a single session.

    Attributes:
        frames_received: Frames read from the transport.
        events_delivered: Handler invocations that returned normally.
        decode_errors: Frames that failed to decode.
        handler_errors: Handler invocations that raised.
        last_frame_ts: Local receive timestamp of the last frame (ms).
        state: Current session state.
    """

    frames_received: int = 0
    events_delivered: int = 0
    decode_errors: int = 0
    handler_errors: int = 0
    last_frame_ts: int = 0
    state: SessionState = SessionState.CONNECTING


class SubscriptionSession:
    """
    Owns one transport connection for one subscription.

    Responsible for:
    - Dialing the endpoint
    - Running the receive loop on a dedicated thread
    - Decoding frames and dispatching them to the caller
    - Reporting every post-construction failure to the error handler
    """

    def __init__(
        self,
        endpoint: Endpoint,
        decoder: FrameDecoder,
        handler: EventHandler,
        error_handler: ErrorHandler,
        transport_factory: TransportFactory,
        *,
        config: StreamConfig | None = None,
        exporter: StreamMetricsExporter | None = None,
    ) -> None:
        """
        Initialize the session. Nothing runs until start().

        Args:
            endpoint: Endpoint to dial.
            decoder: Decoder matching the endpoint's frame layout.
            handler: Called with each decoded event (or raw frame).
            error_handler: Called once per failure.
            transport_factory: Builds the transport inside the session loop.
            config: Stream configuration (timeouts).
            exporter: Optional Prometheus exporter.
        """
        self._endpoint = endpoint
        self._decoder = decoder
        self._handler = handler
        self._error_handler = error_handler
        self._transport_factory = transport_factory
        self._config = config or StreamConfig()
        self._exporter = exporter

        self._done = Signal(f"{endpoint.label}:done")
        self._stop = Signal(f"{endpoint.label}:stop")
        self._handle = SubscriptionHandle(self, self._done, self._stop)

        self._state = SessionState.CONNECTING
        self._metrics = SessionMetrics()
        self._terminal_error: Exception | None = None
        self._thread: threading.Thread | None = None

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def handle(self) -> SubscriptionHandle:
        return self._handle

    @property
    def terminal_error(self) -> Exception | None:
        return self._terminal_error

    def get_metrics(self) -> SessionMetrics:
        """Get current session metrics."""
        self._metrics.state = self._state
        return self._metrics

    def start(self) -> SubscriptionHandle:
        """
        Start the session thread and return immediately.

        Raises:
            RuntimeError: If the session was already started.
        """
        if self._thread is not None:
            raise RuntimeError("session already started")

        self._thread = threading.Thread(
            target=self._run,
            name=f"binance-stream[{self._endpoint.label}]",
            daemon=True,
        )
        if self._exporter:
            self._exporter.session_started(self._endpoint.kind)
        self._thread.start()
        return self._handle

    def _set_state(self, state: SessionState) -> None:
        if self._state != state:
            old_state = self._state
            self._state = state
            self._metrics.state = state
            logger.debug(
                "Session state changed",
                extra={
                    "stream": self._endpoint.label,
                    "old_state": old_state.value,
                    "new_state": state.value,
                },
            )

    def _run(self) -> None:
        """Thread entry point."""
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            loop.run_until_complete(self._serve())
        except Exception as e:
            # Loop-level failures still end in CLOSED with done closed
            logger.exception("Session loop crashed", extra={"stream": self._endpoint.label})
            self._fail(TransportError(f"session loop crashed: {e}"))
        finally:
            try:
                self._shutdown_loop(loop)
            finally:
                self._set_state(SessionState.CLOSED)
                if self._exporter:
                    self._exporter.session_closed(self._endpoint.kind)
                self._done.close()
                logger.info("Session closed", extra={"stream": self._endpoint.label})

    def _shutdown_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Cancel leftover tasks and close the loop.

        Every wait is bounded by close_timeout_s. Tasks that ignore
        cancellation are abandoned with the loop.
        """
        timeout = self._config.close_timeout_s
        try:
            pending = {task for task in asyncio.all_tasks(loop) if not task.done()}
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.wait(pending, timeout=timeout))
                stuck = [task for task in pending if not task.done()]
                if stuck:
                    logger.warning(
                        "Abandoning tasks that ignored cancellation",
                        extra={"stream": self._endpoint.label, "tasks": len(stuck)},
                    )
                for task in pending:
                    if task.done() and not task.cancelled():
                        task.exception()
            loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(asyncio.TimeoutError):
                loop.run_until_complete(
                    asyncio.wait_for(loop.shutdown_default_executor(), timeout)
                )
        finally:
            asyncio.set_event_loop(None)
            loop.close()

    async def _serve(self) -> None:
        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()

        def wake() -> None:
            # The loop may already be closed if stop races with shutdown
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(stop_requested.set)

        self._stop.add_callback(wake)
        try:
            conn = await self._dial(stop_requested)
            if conn is None:
                return

            self._set_state(SessionState.OPEN)
            logger.info("Session open", extra={"stream": self._endpoint.label})
            try:
                await self._receive_loop(conn, stop_requested)
            finally:
                self._set_state(SessionState.DRAINING)
                await self._release(conn)
        finally:
            self._stop.remove_callback(wake)

    async def _dial(self, stop_requested: asyncio.Event) -> Connection | None:
        """
        Open the connection, racing the dial against stop.

        Returns:
            The open connection, or None if the dial failed or stop won.
        """
        logger.info("Connecting", extra={"stream": self._endpoint.label})
        try:
            transport: Transport = self._transport_factory()
        except Exception as e:
            self._fail(ConnectError(f"failed to create transport: {e}", self._endpoint.label))
            return None

        dial = asyncio.create_task(transport.connect(self._endpoint.url))
        stopper = asyncio.create_task(stop_requested.wait())
        try:
            finished, _ = await asyncio.wait(
                {dial, stopper},
                timeout=self._config.connect_timeout_s,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stopper.cancel()

        # Stop wins ties; a dial outcome in the same cycle is discarded
        stopped = stopper in finished or self._stop.is_closed
        if stopped or dial not in finished:
            conn = await self._abandon(dial)
            if conn is not None:
                await self._release(conn)
            if stopped:
                logger.info("Stopped while connecting", extra={"stream": self._endpoint.label})
            else:
                self._fail(ConnectError("connect timed out", self._endpoint.label))
            return None

        try:
            conn = dial.result()
        except ConnectError as e:
            e.endpoint = self._endpoint.label
            self._fail(e)
            return None
        except Exception as e:
            self._fail(ConnectError(f"failed to connect: {e}", self._endpoint.label))
            return None

        if self._stop.is_closed:
            await self._release(conn)
            return None
        return conn

    async def _receive_loop(self, conn: Connection, stop_requested: asyncio.Event) -> None:
        """Read frames until stop or a terminal transport error."""
        stopper = asyncio.create_task(stop_requested.wait())
        reader: asyncio.Task[bytes] | None = None
        try:
            while True:
                reader = asyncio.create_task(conn.receive())
                await asyncio.wait({reader, stopper}, return_when=asyncio.FIRST_COMPLETED)

                # Stop wins ties; a frame or error read in the same cycle is dropped
                if stopper.done() or self._stop.is_closed:
                    logger.info("Stop requested", extra={"stream": self._endpoint.label})
                    return

                try:
                    frame = reader.result()
                except TransportError as e:
                    self._fail(e)
                    return
                except Exception as e:
                    self._fail(TransportError(f"read failed: {e}"))
                    return
                finally:
                    reader = None

                self._dispatch(frame)
        finally:
            stopper.cancel()
            if reader is not None:
                await self._abandon(reader)

    async def _abandon(self, task: asyncio.Task[Any]) -> Any:
        """
        Cancel a task and wait at most close_timeout_s for it to settle.

        Returns:
            The task's result if it completed normally, else None. A failure
            is retrieved and dropped.
        """
        task.cancel()
        await asyncio.wait({task}, timeout=self._config.close_timeout_s)
        if not task.done() or task.cancelled():
            return None
        if task.exception() is not None:
            return None
        return task.result()

    def _dispatch(self, frame: bytes) -> None:
        """Decode one frame and hand it to the caller."""
        self._metrics.frames_received += 1
        self._metrics.last_frame_ts = int(time.time() * 1000)
        if self._exporter:
            self._exporter.frame_received(self._endpoint.kind)

        try:
            event = self._decoder.decode(frame)
        except DecodeError as e:
            self._metrics.decode_errors += 1
            self._report(e)
            return

        try:
            self._handler(event)
        except Exception as e:
            self._metrics.handler_errors += 1
            error = HandlerError(f"handler raised {type(e).__name__}: {e}")
            error.__cause__ = e
            self._report(error)
            return

        self._metrics.events_delivered += 1

    async def _release(self, conn: Connection) -> None:
        try:
            await asyncio.wait_for(conn.close(), timeout=self._config.close_timeout_s)
        except Exception as e:
            logger.warning(
                "Failed to close connection cleanly",
                extra={"stream": self._endpoint.label, "error": str(e)},
            )

    def _fail(self, error: Exception) -> None:
        """Record a terminal error and report it."""
        if self._terminal_error is None:
            self._terminal_error = error
        self._report(error)

    def _report(self, error: Exception) -> None:
        """Deliver an error to the caller's error handler exactly once."""
        logger.warning(
            "Stream error",
            extra={
                "stream": self._endpoint.label,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        if self._exporter:
            self._exporter.error_reported(self._endpoint.kind, error)
        try:
            self._error_handler(error)
        except Exception:
            logger.exception("Error handler raised", extra={"stream": self._endpoint.label})
