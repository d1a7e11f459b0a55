"""
Scheduler module for running queued action programs.

Exports:
    ActionQueueScheduler: Drives programs through execution and polling
    RetryConfig: Exponential backoff for transient failures
    now_ms: Current time in epoch milliseconds
"""

from actionqueue_core.scheduler.retry import RetryConfig
from actionqueue_core.scheduler.runner import ActionQueueScheduler, now_ms

__all__ = ["ActionQueueScheduler", "RetryConfig", "now_ms"]
