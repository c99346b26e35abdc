"""
Backoff helpers for re-establishing the model connection.
"""

from callrelay.config.constants import (
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_BASE_DELAY,
)


class RetryUtils:
    """Shared retry utility functions."""

    @staticmethod
    def calculate_backoff_delay(
        attempt: int, base_delay: float = DEFAULT_RECONNECT_BASE_DELAY
    ) -> float:
        """
        Delay in seconds before reconnect attempt ``attempt`` (zero based).

        Doubles with every attempt: 1s, 2s, 4s for the default base delay.
        """
        if attempt < 0:
            raise ValueError("attempt must be non-negative")
        return (2**attempt) * base_delay

    @staticmethod
    def should_retry(
        attempts: int, max_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    ) -> bool:
        return attempts < max_attempts
