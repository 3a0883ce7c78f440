"""Utility modules for aifunctions."""

from aifunctions.utils.logger import get_logger, setup_logging
from aifunctions.utils.retry import BackoffConfig, backoff_delays, calculate_delay

__all__ = [
    "BackoffConfig",
    "backoff_delays",
    "calculate_delay",
    "get_logger",
    "setup_logging",
]
