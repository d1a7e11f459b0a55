"""Tests for RetryConfig backoff calculation."""

from actionqueue_core.config import Settings
from actionqueue_core.scheduler.retry import RetryConfig


class TestRetryConfig:
    """Tests for retry delay calculation."""

    def test_exponential_growth_without_jitter(self):
        config = RetryConfig(min_wait_ms=1000, jitter_fraction=0)

        assert [config.calculate_delay_ms(attempt) for attempt in range(4)] == [
            1000,
            2000,
            4000,
            8000,
        ]

    def test_delay_saturates_at_max_wait(self):
        config = RetryConfig(min_wait_ms=1000, max_wait_ms=5000, jitter_fraction=0)

        assert config.calculate_delay_ms(10) == 5000

    def test_jitter_stays_in_range(self):
        config = RetryConfig(min_wait_ms=1000, jitter_fraction=0.5)

        for _ in range(50):
            assert 2000 <= config.calculate_delay_ms(1) <= 3000

    def test_next_retry_is_absolute(self):
        config = RetryConfig(min_wait_ms=1000, jitter_fraction=0)

        assert config.calculate_next_retry(0, now_ms=50_000) == 51_000

    def test_from_settings(self):
        config = RetryConfig.from_settings(Settings(retry_min_wait_ms=250, retry_max_wait_ms=4000))

        assert config.min_wait_ms == 250
        assert config.max_wait_ms == 4000

    def test_huge_attempt_count_saturates(self):
        config = RetryConfig(min_wait_ms=1000, max_wait_ms=60_000, jitter_fraction=0)

        assert config.calculate_delay_ms(5000) == 60_000
