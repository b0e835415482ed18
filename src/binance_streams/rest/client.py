"""
REST client for the listen-key round trips private streams depend on.

The margin data stream is addressed by a listen key obtained through an
API-key authenticated call. Keys expire unless kept alive (every 30 minutes
is the exchange's recommendation) and should be closed when no longer used.

One request per call: retry and rate-limit policy are left to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
import orjson

from binance_streams.errors import APIError
from binance_streams.streams.types import StreamConfig

logger = logging.getLogger(__name__)

MARGIN_LISTEN_KEY_ENDPOINT = "/sapi/v1/margin/listen-key"


class RestClient:
    """
    Async request executor for API-key secured endpoints.

    Signed endpoints are out of scope; the listen-key calls only need the
    X-MBX-APIKEY header.
    """

    def __init__(self, api_key: str, config: StreamConfig | None = None) -> None:
        """
        Initialize the REST client.

        Args:
            api_key: Binance API key.
            config: Configuration providing the REST base URL and timeout.
        """
        self._api_key = api_key
        self._config = config or StreamConfig()
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_ms / 1000)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"X-MBX-APIKEY": self._api_key},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        endpoint: str,
        form: dict[str, str] | None = None,
    ) -> Any:
        """
        Perform one round trip.

        Args:
            method: HTTP method.
            endpoint: API endpoint path.
            form: Form-encoded body parameters.

        Returns:
            Parsed JSON response ({} for an empty body).

        Raises:
            APIError: If the response status is 400 or above.
            aiohttp.ClientError: On network errors.
        """
        url = f"{self._config.base_rest_url}{endpoint}"
        session = await self._get_session()
        async with session.request(method, url, data=form) as response:
            body = await response.read()

            if response.status >= 400:
                code, message = _parse_error(body)
                logger.warning(
                    "HTTP error",
                    extra={"status": response.status, "error_code": code, "endpoint": endpoint},
                )
                raise APIError(response.status, code, message)

            if not body:
                return {}
            return orjson.loads(body)


class MarginListenKeyService:
    """Start, keep alive and close margin user data stream listen keys."""

    def __init__(self, client: RestClient) -> None:
        self._client = client

    async def start(self) -> str:
        """
        Create a listen key.

        Returns:
            The listen key to pass to StreamService.margin_data().
        """
        data = await self._client.request("POST", MARGIN_LISTEN_KEY_ENDPOINT)
        listen_key = data.get("listenKey") if isinstance(data, dict) else None
        if not isinstance(listen_key, str) or not listen_key:
            raise APIError(200, None, "response has no listenKey")
        logger.info("Margin listen key created")
        return listen_key

    async def keepalive(self, listen_key: str) -> None:
        """Extend the listen key's validity."""
        await self._client.request(
            "PUT", MARGIN_LISTEN_KEY_ENDPOINT, form={"listenKey": listen_key}
        )

    async def close(self, listen_key: str) -> None:
        """Invalidate the listen key; its stream is closed by the exchange."""
        await self._client.request(
            "DELETE", MARGIN_LISTEN_KEY_ENDPOINT, form={"listenKey": listen_key}
        )
        logger.info("Margin listen key closed")


def _parse_error(body: bytes) -> tuple[int | None, str]:
    """Extract the exchange's {"code", "msg"} error body, if present."""
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError:
        return None, body[:200].decode(errors="replace")
    if not isinstance(data, dict):
        return None, str(data)[:200]
    code = data.get("code")
    return (code if isinstance(code, int) else None), str(data.get("msg", ""))
