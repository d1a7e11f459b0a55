"""
SQLite schema for action queue persistence.

This module defines the database schema for:
- Queue items (program + execution state, keyed by program id)
- Push events signaled from outside the scheduler process

Program and state are stored as JSON documents; the handful of columns
next to them exist only for listing and filtering.
"""

QUEUE_SCHEMA_SQL = """
-- Queued programs with their latest execution state
CREATE TABLE IF NOT EXISTS queue_items (
    program_id TEXT PRIMARY KEY,
    client_id TEXT NOT NULL,
    op_type TEXT NOT NULL,                 -- root op type (seq, swap, ...)
    done BOOLEAN NOT NULL DEFAULT 0,       -- terminal done effect reached
    next_execution_time INTEGER NOT NULL DEFAULT 0,  -- epoch ms
    program TEXT NOT NULL,                 -- ActionProgram JSON
    state TEXT NOT NULL,                   -- ActionProgramState JSON
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Index for listing active programs
CREATE INDEX IF NOT EXISTS idx_queue_items_done
ON queue_items(done, next_execution_time);

-- Trigger to update updated_at on modification
CREATE TRIGGER IF NOT EXISTS queue_items_updated_at
AFTER UPDATE ON queue_items
BEGIN
    UPDATE queue_items SET updated_at = CURRENT_TIMESTAMP
    WHERE program_id = NEW.program_id;
END;
"""

EVENTS_SCHEMA_SQL = """
-- Push events; a row means the event has been signaled
CREATE TABLE IF NOT EXISTS push_events (
    event_id TEXT PRIMARY KEY,
    signaled_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""
