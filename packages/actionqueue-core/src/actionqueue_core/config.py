"""Environment-based configuration for the action queue."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Action queue configuration.

    All settings can be overridden via environment variables with
    ACTIONQUEUE_ prefix. For example:
        ACTIONQUEUE_TX_CONFIRMATIONS=3
        ACTIONQUEUE_DB_PATH=/var/lib/actionqueue/queue.db

    Delays are milliseconds, matching the persisted program timestamps.
    """

    # Effect polling cadence
    balance_poll_ms: int = 15000
    price_poll_ms: int = 15000
    tx_confs_poll_ms: int = 15000
    tx_confs_near_poll_ms: int = 5000  # within one confirmation of the target
    push_event_poll_ms: int = 1000

    # Confirmations required before a broadcast transaction counts as done
    tx_confirmations: int = 1

    # Wait after a dry-run reports the action cannot run yet
    deferral_delay_ms: int = 15000

    # Backoff for transient check/evaluation failures
    retry_min_wait_ms: int = 1000
    retry_max_wait_ms: int = 60000

    # Longest the run loop sleeps between ticks
    max_idle_seconds: float = 15.0

    # Exchange rate feed
    rates_url: str = "https://rates2.edge.app"

    # Queue database
    db_path: Path = Path.home() / ".actionqueue" / "queue.db"

    model_config = {"env_prefix": "ACTIONQUEUE_"}
