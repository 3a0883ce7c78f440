"""Exponential backoff schedule for rate-limited backend requests."""

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for rate-limit backoff.

    Attributes:
        initial_delay: First wait in seconds (default: 1.0)
        max_delay: Ceiling in seconds; a wait reaching it is never slept (default: 60.0)
        backoff_factor: Multiplier applied after every wait (default: 2.0)
    """

    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0

    def __post_init__(self):
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if self.backoff_factor <= 1:
            raise ValueError("backoff_factor must be greater than 1")


def calculate_delay(attempt: int, config: BackoffConfig) -> float:
    """
    Calculate the wait before retry number ``attempt`` (0-based).

    Args:
        attempt: Number of rate-limited responses already waited out
        config: Backoff configuration

    Returns:
        Delay in seconds, uncapped
    """
    return config.initial_delay * (config.backoff_factor**attempt)


def backoff_delays(config: BackoffConfig) -> Iterator[float]:
    """Yield successive waits, stopping before the first one that reaches the ceiling.

    With the defaults this yields 1, 2, 4, 8, 16 and 32 seconds.
    """
    attempt = 0
    while True:
        delay = calculate_delay(attempt, config)
        if delay >= config.max_delay:
            return
        yield delay
        attempt += 1
