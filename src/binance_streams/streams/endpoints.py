"""
Endpoint builder for Binance WebSocket streams.

Pure functions: the same arguments always produce the same URL. Invalid
combinations raise ConfigurationError before anything touches the network.

Examples (futures base):
    - wss://fstream.binance.com/ws/btcusdt@bookTicker
    - wss://fstream.binance.com/ws/btcusdt@markPrice@1s
    - wss://fstream.binance.com/stream?streams=btcusdt@bookTicker/ethusdt@bookTicker
    - wss://fstream.binance.com/ws/!markPrice@arr
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import timedelta

from binance_streams.errors import ConfigurationError
from binance_streams.streams.types import (
    RATE_DEFAULT,
    RATE_FAST,
    Endpoint,
    StreamConfig,
    StreamKind,
)

# Longest label we log for combined endpoints before summarising
_MAX_LABEL_STREAMS = 3


def rate_marker(rate: timedelta, symbol: str | None = None) -> str:
    """
    Map an update rate to its path marker.

    Only the two cadences the exchange defines are accepted. Values that are
    numerically equal but not timedelta (e.g. ``1`` or ``1.0``) are rejected.

    Args:
        rate: Requested update rate.
        symbol: Symbol the rate applies to, used in the error message.

    Returns:
        "" for the default cadence, "@1s" for the fast cadence.

    Raises:
        ConfigurationError: If the rate is outside the accepted set.
    """
    if type(rate) is timedelta:
        if rate == RATE_DEFAULT:
            return ""
        if rate == RATE_FAST:
            return "@1s"
    if symbol is not None:
        raise ConfigurationError(f"invalid rate for symbol {symbol}: {rate!r}")
    raise ConfigurationError(f"invalid rate: {rate!r}")


def stream_name(symbol: str, kind: StreamKind, rate: timedelta | None = None) -> str:
    """Build a single stream name, e.g. ``btcusdt@markPrice@1s``."""
    _require_market_kind(kind)
    if not symbol or not symbol.strip():
        raise ConfigurationError("symbol must be a non-empty string")
    suffix = kind.value
    if rate is not None:
        _require_rate_support(kind)
        suffix += rate_marker(rate, symbol)
    return f"{symbol.strip().lower()}@{suffix}"


def single_endpoint(
    config: StreamConfig,
    kind: StreamKind,
    symbol: str,
    rate: timedelta | None = None,
) -> Endpoint:
    """Endpoint for one symbol's stream; frames arrive unwrapped."""
    name = stream_name(symbol, kind, rate)
    return Endpoint(
        url=f"{config.base_ws_url}/ws/{name}",
        kind=kind,
        streams=(name,),
        label=name,
    )


def combined_endpoint(
    config: StreamConfig,
    kind: StreamKind,
    symbols: Sequence[str],
) -> Endpoint:
    """
    Endpoint multiplexing several symbols over one connection.

    Args:
        config: Stream configuration.
        kind: Stream kind for every symbol.
        symbols: Symbols in the order they should appear in the path.

    Raises:
        ConfigurationError: If symbols is empty or a bare string.
    """
    if isinstance(symbols, str):
        raise ConfigurationError("symbols must be a sequence of symbols, not a string")
    if not symbols:
        raise ConfigurationError("combined stream requires at least one symbol")
    names = tuple(stream_name(symbol, kind) for symbol in symbols)
    return _combined(config, kind, names)


def combined_endpoint_with_rates(
    config: StreamConfig,
    kind: StreamKind,
    symbol_rates: Mapping[str, timedelta],
) -> Endpoint:
    """
    Combined endpoint with a per-symbol update rate.

    Symbols keep the mapping's iteration order. A default-cadence entry
    produces no marker, so ``{"BTCUSDT": RATE_DEFAULT}`` builds the same path
    as the plain combined endpoint. Every rate is validated, so ``None`` is
    rejected rather than read as "default".
    """
    _require_rate_support(kind)
    if not symbol_rates:
        raise ConfigurationError("combined stream requires at least one symbol")
    names = tuple(
        stream_name(symbol, kind) + rate_marker(rate, symbol)
        for symbol, rate in symbol_rates.items()
    )
    return _combined(config, kind, names)


def all_symbols_endpoint(
    config: StreamConfig,
    kind: StreamKind,
    rate: timedelta | None = None,
) -> Endpoint:
    """Endpoint for the all-market array feed, e.g. ``!markPrice@arr``."""
    if rate is not None:
        return all_symbols_endpoint_with_rate(config, kind, rate)
    _require_all_symbols(kind)
    return _all_symbols(config, kind, f"!{kind.value}@arr")


def all_symbols_endpoint_with_rate(
    config: StreamConfig,
    kind: StreamKind,
    rate: timedelta,
) -> Endpoint:
    """All-market array feed at an explicit rate, e.g. ``!markPrice@arr@1s``."""
    _require_all_symbols(kind)
    return _all_symbols(config, kind, f"!{kind.value}@arr{rate_marker(rate)}")


def _all_symbols(config: StreamConfig, kind: StreamKind, suffix: str) -> Endpoint:
    return Endpoint(
        url=f"{config.base_ws_url}/ws/{suffix}",
        kind=kind,
        streams=(suffix,),
        many=True,
        label=suffix,
    )


def margin_data_endpoint(config: StreamConfig, listen_key: str) -> Endpoint:
    """Endpoint for the private margin data stream addressed by a listen key."""
    if not listen_key or not listen_key.strip():
        raise ConfigurationError("listen key must be a non-empty string")
    key = listen_key.strip()
    return Endpoint(
        url=f"{config.margin_ws_url}/ws/{key}",
        kind=StreamKind.MARGIN_DATA,
        streams=(key,),
        label=StreamKind.MARGIN_DATA.value,
    )


def _combined(config: StreamConfig, kind: StreamKind, names: tuple[str, ...]) -> Endpoint:
    if len(names) <= _MAX_LABEL_STREAMS:
        label = "/".join(names)
    else:
        label = f"{'/'.join(names[:_MAX_LABEL_STREAMS])}/+{len(names) - _MAX_LABEL_STREAMS}"
    return Endpoint(
        url=f"{config.base_ws_url}/stream?streams={'/'.join(names)}",
        kind=kind,
        streams=names,
        combined=True,
        label=label,
    )


def _require_market_kind(kind: StreamKind) -> None:
    if kind is StreamKind.MARGIN_DATA:
        raise ConfigurationError("margin data streams are addressed by listen key, not symbol")


def _require_rate_support(kind: StreamKind) -> None:
    if not kind.supports_rate:
        raise ConfigurationError(f"{kind.value} does not support a rate qualifier")


def _require_all_symbols(kind: StreamKind) -> None:
    _require_market_kind(kind)
    if not kind.supports_all_symbols:
        raise ConfigurationError(f"{kind.value} has no all-symbols feed")
