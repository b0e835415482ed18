"""REST round trips needed by private streams (listen keys)."""

from binance_streams.rest.client import MarginListenKeyService, RestClient

__all__ = [
    "MarginListenKeyService",
    "RestClient",
]
