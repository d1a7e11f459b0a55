"""
Database module for action queue persistence.

Exports:
    ActionQueueDB: Async context manager for queue database operations
"""

from actionqueue_core.db.queue import ActionQueueDB

__all__ = ["ActionQueueDB"]
