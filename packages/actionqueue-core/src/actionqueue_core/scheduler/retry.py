"""
Retry configuration for transient scheduler failures.

RetryConfig spaces out retries with exponential backoff and jitter, so
programs whose balance, rate or confirmation lookups keep failing do not
hammer the same endpoint in lock-step.

Transient failures never terminate a program, so there is no attempt
cap; the delay just saturates at max_wait_ms.
"""

import random
from dataclasses import dataclass

from actionqueue_core.config import Settings

# Backoff exponent cap; the wait saturates long before it, and base**attempt
# overflows a float for large attempt counts
MAX_EXPONENT = 32


@dataclass
class RetryConfig:
    """
    Configuration for transient failure retry behavior.

    Attributes:
        min_wait_ms: Wait before the first retry (default 1000)
        max_wait_ms: Maximum wait between retries (default 60000)
        exponential_base: Base for exponential calculation (default 2.0)
        jitter_fraction: Fraction of wait time to add as jitter (default 0.5)

    Example:
        config = RetryConfig(min_wait_ms=2000)
        delay = config.calculate_delay_ms(attempt=1)
        # Returns ~4000-6000 (4s base + jitter)
    """

    min_wait_ms: int = 1000
    max_wait_ms: int = 60000
    exponential_base: float = 2.0
    jitter_fraction: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryConfig":
        """Build a config from the backoff bounds in settings."""
        return cls(
            min_wait_ms=settings.retry_min_wait_ms,
            max_wait_ms=settings.retry_max_wait_ms,
        )

    def calculate_delay_ms(self, attempt: int) -> int:
        """
        Calculate the delay before the next retry.

        Formula: min(max_wait, min_wait * base^attempt) + random(0, wait * jitter)

        Args:
            attempt: Consecutive transient failures before this one

        Returns:
            Delay in milliseconds
        """
        exponent = min(attempt, MAX_EXPONENT)
        wait = min(
            self.max_wait_ms,
            self.min_wait_ms * (self.exponential_base**exponent),
        )

        # Spread programs that failed together
        jitter = random.uniform(0, wait * self.jitter_fraction)
        return int(wait + jitter)

    def calculate_next_retry(self, attempt: int, now_ms: int) -> int:
        """Return the epoch ms at which the next retry is due."""
        return now_ms + self.calculate_delay_ms(attempt)
