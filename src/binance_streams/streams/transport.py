"""
WebSocket transport used by subscription sessions.

A Transport dials one URL and returns a Connection yielding opaque frame
payloads. Handshake, compression and ping/pong stay inside the transport;
sessions only see frames, ConnectError and TransportError.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import aiohttp

from binance_streams.errors import ConnectError, TransportError
from binance_streams.streams.types import StreamConfig


class Connection(Protocol):
    """An open duplex connection."""

    async def receive(self) -> bytes:
        """Wait for the next frame. Raises TransportError on terminal failure."""
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...


class Transport(Protocol):
    """Dials connections. One transport instance serves one session."""

    async def connect(self, url: str) -> Connection:
        """Open a connection. Raises ConnectError on failure."""
        ...


# Built inside the session's own event loop, so aiohttp objects never cross loops
TransportFactory = Callable[[], Transport]


class AiohttpConnection:
    """Connection backed by an aiohttp client WebSocket."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
    ) -> None:
        self._session = session
        self._ws = ws

    async def receive(self) -> bytes:
        while True:
            try:
                msg = await self._ws.receive()
            except (aiohttp.ClientError, OSError) as e:
                raise TransportError(f"read failed: {e}") from e

            if msg.type == aiohttp.WSMsgType.TEXT:
                data: str = msg.data
                return data.encode()
            if msg.type == aiohttp.WSMsgType.BINARY:
                payload: bytes = msg.data
                return payload
            if msg.type in (aiohttp.WSMsgType.PING, aiohttp.WSMsgType.PONG):
                continue
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                raise TransportError("connection closed by server", close_code=self._ws.close_code)
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"websocket error: {self._ws.exception()}")

            raise TransportError(f"unexpected message type: {msg.type!r}")

    async def close(self) -> None:
        try:
            if not self._ws.closed:
                await self._ws.close()
        finally:
            if not self._session.closed:
                await self._session.close()


class AiohttpTransport:
    """
    Transport dialing with aiohttp.

    Heartbeat pings keep the connection alive and let aiohttp detect a dead
    peer; the server's own pings are answered automatically.
    """

    def __init__(self, config: StreamConfig | None = None) -> None:
        self._config = config or StreamConfig()

    async def connect(self, url: str) -> AiohttpConnection:
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(
                url,
                heartbeat=self._config.heartbeat_s,
                timeout=aiohttp.ClientWSTimeout(ws_close=self._config.close_timeout_s),
            )
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            await session.close()
            raise ConnectError(f"failed to connect: {e}") from e
        except BaseException:
            await session.close()
            raise

        return AiohttpConnection(session, ws)
