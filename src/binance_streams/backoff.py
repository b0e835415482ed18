"""
Resubscribe backoff for callers that retry failed subscriptions.

Sessions never retry on their own: a dial or read failure closes the
subscription and reports the error. Callers that want a long-running feed
resubscribe after a terminal error, waiting compute_backoff_delay() between
attempts so a flapping endpoint does not turn into a reconnect storm.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass


@dataclass
class BackoffConfig:
    """Configuration for exponential backoff."""

    base_delay_ms: int = 1000
    max_delay_ms: int = 60000
    multiplier: float = 2.0
    jitter_factor: float = 0.5  # 0.5 = ±50% jitter
    max_retries: int = 10

    def __post_init__(self) -> None:
        if self.base_delay_ms < 0 or self.max_delay_ms < self.base_delay_ms:
            raise ValueError("require 0 <= base_delay_ms <= max_delay_ms")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= self.jitter_factor < 1.0:
            raise ValueError("jitter_factor must be in [0, 1)")


@dataclass
class BackoffState:
    """Mutable state for backoff tracking."""

    attempt: int = 0
    last_error_time_ms: int = 0

    def reset(self) -> None:
        """Reset after a subscription stayed healthy."""
        self.attempt = 0

    def record_error(self) -> None:
        """Record a terminal subscription error."""
        self.attempt += 1
        self.last_error_time_ms = int(time.time() * 1000)

    def exhausted(self, config: BackoffConfig) -> bool:
        return self.attempt > config.max_retries


def compute_backoff_delay(
    config: BackoffConfig,
    state: BackoffState,
    *,
    rng: random.Random | None = None,
) -> int:
    """
    Compute backoff delay with exponential increase and jitter.

    Args:
        config: Backoff configuration.
        state: Current backoff state.
        rng: Optional seeded Random instance for deterministic jitter.

    Returns:
        Delay in milliseconds before the next attempt (0 before any error).
    """
    if state.attempt == 0:
        return 0

    delay = config.base_delay_ms * (config.multiplier ** (state.attempt - 1))

    jitter_min = 1.0 - config.jitter_factor
    jitter_max = 1.0 + config.jitter_factor
    source = rng if rng is not None else random
    delay *= source.uniform(jitter_min, jitter_max)

    return int(min(delay, config.max_delay_ms))
