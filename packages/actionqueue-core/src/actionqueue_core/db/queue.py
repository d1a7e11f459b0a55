"""
SQLite-based action queue persistence.

This module provides async database operations for the action queue:
- Save and load queue items (program + state)
- Re-hydrate the whole queue map after a restart
- Record push events signaled by other processes

Per project patterns:
- Use async context manager for connection lifecycle
- One commit per write
- Models serialized with pydantic's JSON round-trip
"""

from pathlib import Path
from typing import Any

import aiosqlite

from actionqueue_core.actions.types import (
    ActionProgram,
    ActionProgramState,
    ActionQueueItem,
    ActionQueueMap,
)
from actionqueue_core.db.schema import EVENTS_SCHEMA_SQL, QUEUE_SCHEMA_SQL


class ActionQueueDB:
    """
    Async context manager for action queue database operations.

    Example:
        async with ActionQueueDB(Path("queue.db")) as db:
            await db.save_item(item)
            queue = await db.load_queue()
    """

    def __init__(self, db_path: Path) -> None:
        """
        Initialize the database connection manager.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "ActionQueueDB":
        """Open database connection and ensure schema exists."""
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._ensure_schema()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def _ensure_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        await self._conn.executescript(QUEUE_SCHEMA_SQL)
        await self._conn.executescript(EVENTS_SCHEMA_SQL)
        await self._conn.commit()

    def _row_to_item(self, row: aiosqlite.Row) -> ActionQueueItem:
        """
        Convert a database row to an ActionQueueItem.

        Args:
            row: Database row with program and state JSON

        Returns:
            ActionQueueItem instance
        """
        return ActionQueueItem(
            program=ActionProgram.model_validate_json(row["program"]),
            state=ActionProgramState.model_validate_json(row["state"]),
        )

    async def save_item(self, item: ActionQueueItem) -> None:
        """
        Insert or update a queue item.

        A stored item that already reached its done effect is never
        overwritten, so a cancellation written by another process wins
        over a scheduler that has not seen it yet.

        Args:
            item: The queue item to persist
        """
        state = item.state
        await self._conn.execute(
            """
            INSERT INTO queue_items (
                program_id, client_id, op_type, done, next_execution_time,
                program, state
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(program_id) DO UPDATE SET
                client_id = excluded.client_id,
                done = excluded.done,
                next_execution_time = excluded.next_execution_time,
                state = excluded.state
            WHERE queue_items.done = 0
            """,
            (
                item.program.program_id,
                state.client_id,
                item.program.action_op.type,
                state.is_done,
                state.next_execution_time,
                item.program.model_dump_json(),
                state.model_dump_json(),
            ),
        )
        await self._conn.commit()

    async def get_item(self, program_id: str) -> ActionQueueItem | None:
        """
        Fetch a queue item by program id.

        Args:
            program_id: The program id

        Returns:
            The ActionQueueItem if found, None otherwise
        """
        async with self._conn.execute(
            "SELECT * FROM queue_items WHERE program_id = ?",
            (program_id,),
        ) as cursor:
            row = await cursor.fetchone()

        if row:
            return self._row_to_item(row)
        return None

    async def list_items(self, include_done: bool = True) -> list[ActionQueueItem]:
        """
        List queue items.

        Args:
            include_done: Include programs that reached a done effect

        Returns:
            List of items ordered by created_at
        """
        if include_done:
            query = "SELECT * FROM queue_items ORDER BY created_at, program_id"
        else:
            query = "SELECT * FROM queue_items WHERE done = 0 ORDER BY created_at, program_id"

        async with self._conn.execute(query) as cursor:
            rows = await cursor.fetchall()

        return [self._row_to_item(row) for row in rows]

    async def delete_item(self, program_id: str) -> bool:
        """
        Delete a queue item.

        Args:
            program_id: The program id

        Returns:
            True if an item was deleted
        """
        cursor = await self._conn.execute(
            "DELETE FROM queue_items WHERE program_id = ?",
            (program_id,),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def load_queue(self) -> ActionQueueMap:
        """
        Load every queue item as a queue map.

        No execution survives a restart, so states come back with
        executing=False.
        """
        items = await self.list_items()
        for item in items:
            item.state.executing = False
        return {item.program.program_id: item for item in items}

    async def signal_event(self, event_id: str) -> bool:
        """
        Record a push event as signaled.

        Returns:
            True if the event was not signaled before
        """
        cursor = await self._conn.execute(
            "INSERT OR IGNORE INTO push_events (event_id) VALUES (?)",
            (event_id,),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def list_signaled_events(self) -> list[str]:
        """List signaled push event ids in signal order."""
        async with self._conn.execute(
            "SELECT event_id FROM push_events ORDER BY signaled_at, event_id"
        ) as cursor:
            rows = await cursor.fetchall()
        return [row["event_id"] for row in rows]
