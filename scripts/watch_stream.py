#!/usr/bin/env python3
"""
Watch a Binance stream and print its events as JSON lines.

Subscribes through StreamService and resubscribes with exponential backoff
after terminal failures (dial or read errors). Decode errors are logged and
the feed keeps running.

Usage:
    python -m scripts.watch_stream --kind book-ticker --symbols BTCUSDT,ETHUSDT
    python -m scripts.watch_stream --kind mark-price --symbols BTCUSDT --fast
    python -m scripts.watch_stream --kind all-mark-price --raw --duration-s 30
"""

from __future__ import annotations

import argparse
import logging
import re
import signal
import sys
import time
from dataclasses import dataclass, field
from typing import Any, TextIO

from prometheus_client import start_http_server

from binance_streams.backoff import BackoffConfig, BackoffState, compute_backoff_delay
from binance_streams.exporter import StreamMetricsExporter
from binance_streams.logging_config import setup_logging
from binance_streams.streams import (
    RATE_FAST,
    Signal,
    StreamConfig,
    StreamService,
    SubscriptionHandle,
)

logger = logging.getLogger(__name__)

KINDS = ("book-ticker", "mark-price", "all-mark-price")

_SYMBOL_RE = re.compile(r"^[A-Z0-9]+$")


@dataclass
class WatchConfig:
    """Configuration for the stream watcher."""

    kind: str = "book-ticker"
    symbols: list[str] = field(default_factory=list)

    # 1s mark price cadence instead of the default 3s
    fast: bool = False

    # Print frames as received instead of decoded events
    raw: bool = False

    # None = run until SIGINT/SIGTERM
    duration_s: int | None = None

    # Prometheus /metrics port (0 = disabled)
    metrics_port: int = 0

    max_retries: int = 10
    graceful_timeout_s: int = 10
    testnet: bool = False
    json_logs: bool = True
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            msg = f"kind must be one of {', '.join(KINDS)}, got {self.kind!r}"
            raise ValueError(msg)
        if self.kind != "all-mark-price" and not self.symbols:
            msg = f"kind {self.kind} requires at least one symbol"
            raise ValueError(msg)
        if self.fast and self.kind == "book-ticker":
            msg = "fast cadence is only available for mark price streams"
            raise ValueError(msg)
        for s in self.symbols:
            if not _SYMBOL_RE.match(s):
                msg = f"Invalid symbol format: {s!r} (must be uppercase alphanumeric)"
                raise ValueError(msg)
        if self.duration_s is not None and self.duration_s <= 0:
            msg = f"duration_s must be > 0, got {self.duration_s}"
            raise ValueError(msg)
        if not 0 <= self.metrics_port <= 65535:
            msg = f"metrics_port must be 0..65535, got {self.metrics_port}"
            raise ValueError(msg)
        if self.max_retries < 0:
            msg = f"max_retries must be >= 0, got {self.max_retries}"
            raise ValueError(msg)


def subscribe(
    service: StreamService,
    config: WatchConfig,
    out: TextIO,
) -> SubscriptionHandle:
    """Open the subscription described by config, printing to out."""

    def on_event(event: Any) -> None:
        if isinstance(event, bytes):
            out.write(event.decode(errors="replace") + "\n")
        elif isinstance(event, list):
            for item in event:
                out.write(item.model_dump_json() + "\n")
        else:
            out.write(event.model_dump_json() + "\n")
        out.flush()

    def on_error(err: Exception) -> None:
        logger.warning("Stream error", extra={"error_type": type(err).__name__, "error": str(err)})

    rate = RATE_FAST if config.fast else None

    if config.kind == "all-mark-price":
        if config.raw:
            if rate is None:
                return service.all_raw_mark_price(on_event, on_error)
            return service.all_raw_mark_price_with_rate(rate, on_event, on_error)
        if rate is None:
            return service.all_mark_price(on_event, on_error)
        return service.all_mark_price_with_rate(rate, on_event, on_error)

    if config.kind == "book-ticker":
        if len(config.symbols) == 1:
            if config.raw:
                return service.raw_book_ticker(config.symbols[0], on_event, on_error)
            return service.book_ticker(config.symbols[0], on_event, on_error)
        if config.raw:
            return service.combined_raw_book_ticker(config.symbols, on_event, on_error)
        return service.combined_book_ticker(config.symbols, on_event, on_error)

    if len(config.symbols) == 1:
        if config.raw:
            return service.raw_mark_price(config.symbols[0], on_event, on_error, rate=rate)
        return service.mark_price(config.symbols[0], on_event, on_error, rate=rate)
    if rate is not None:
        symbol_rates = {s: rate for s in config.symbols}
        if config.raw:
            return service.combined_raw_mark_price_with_rate(symbol_rates, on_event, on_error)
        return service.combined_mark_price_with_rate(symbol_rates, on_event, on_error)
    if config.raw:
        return service.combined_raw_mark_price(config.symbols, on_event, on_error)
    return service.combined_mark_price(config.symbols, on_event, on_error)


def run(config: WatchConfig, out: TextIO = sys.stdout) -> int:
    """
    Run the watcher until shutdown, duration expiry or retries are exhausted.

    Returns:
        Exit code (0 = success, 1 = gave up after repeated failures).
    """
    exporter = StreamMetricsExporter()
    if config.metrics_port:
        start_http_server(config.metrics_port, registry=exporter.registry)
        logger.info("Metrics server started", extra={"port": config.metrics_port})

    stream_config = StreamConfig.testnet() if config.testnet else StreamConfig()
    service = StreamService(stream_config, exporter=exporter)

    shutdown = Signal("shutdown")
    shutdown.add_callback(service.close_all)

    def signal_handler(sig: int, frame: object) -> None:
        logger.info("Received signal %s, initiating shutdown", signal.Signals(sig).name)
        shutdown.close()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    deadline = None if config.duration_s is None else time.monotonic() + config.duration_s
    backoff_config = BackoffConfig(max_retries=config.max_retries)
    backoff_state = BackoffState()

    while not shutdown.is_closed:
        handle = subscribe(service, config, out)

        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        if not handle.wait(remaining):
            logger.info("Duration elapsed, stopping")
            shutdown.close()
            handle.wait(config.graceful_timeout_s)
            break

        if shutdown.is_closed or handle.error is None:
            break

        # A session that delivered events was healthy; start the backoff over
        if handle.metrics.events_delivered > 0:
            backoff_state.reset()
        backoff_state.record_error()
        if backoff_state.exhausted(backoff_config):
            logger.error(
                "Giving up after repeated failures",
                extra={"attempts": backoff_state.attempt},
            )
            return 1

        delay_ms = compute_backoff_delay(backoff_config, backoff_state)
        logger.info(
            "Resubscribing with backoff",
            extra={"delay_ms": delay_ms, "attempt": backoff_state.attempt},
        )
        if shutdown.wait(delay_ms / 1000):
            break

    if not service.wait_all(config.graceful_timeout_s):
        logger.warning("Sessions still open after graceful timeout")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Watch a Binance futures stream.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--kind", choices=KINDS, default="book-ticker", help="Stream kind")
    parser.add_argument(
        "--symbols",
        type=str,
        default="",
        help="Comma-separated symbols (e.g., BTCUSDT,ETHUSDT)",
    )
    parser.add_argument("--fast", action="store_true", help="1s mark price cadence")
    parser.add_argument("--raw", action="store_true", help="Print frames undecoded")
    parser.add_argument(
        "--duration-s",
        type=int,
        default=None,
        help="Run for N seconds then stop (default: run until SIGINT/SIGTERM)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=0,
        help="Prometheus /metrics port (0 to disable, default: 0)",
    )
    parser.add_argument("--max-retries", type=int, default=10, help="Resubscribe attempts")
    parser.add_argument("--testnet", action="store_true", help="Use the futures testnet")
    parser.add_argument("--plain-logs", action="store_true", help="Human-readable logs")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    symbols = [s.strip().upper() for s in args.symbols.split(",") if s.strip()]
    try:
        config = WatchConfig(
            kind=args.kind,
            symbols=symbols,
            fast=args.fast,
            raw=args.raw,
            duration_s=args.duration_s,
            metrics_port=args.metrics_port,
            max_retries=args.max_retries,
            testnet=args.testnet,
            json_logs=not args.plain_logs,
            verbose=args.verbose,
        )
    except ValueError as e:
        parser.error(str(e))

    setup_logging(
        level=logging.DEBUG if config.verbose else logging.INFO,
        json_format=config.json_logs,
    )
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
