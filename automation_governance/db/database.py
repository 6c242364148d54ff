"""SQLite database connection and schema initialization."""

from pathlib import Path

import aiosqlite

# Global connection holder
_db_connection: aiosqlite.Connection | None = None


async def init_database(db_path: str) -> None:
    """Initialize the database connection and create schema."""
    global _db_connection

    # Ensure the data directory exists
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    _db_connection = await aiosqlite.connect(db_path)
    _db_connection.row_factory = aiosqlite.Row

    # Enable foreign keys
    await _db_connection.execute("PRAGMA foreign_keys = ON")

    # Create schema
    await _create_schema(_db_connection)


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection
    if _db_connection:
        await _db_connection.close()
        _db_connection = None


async def get_db() -> aiosqlite.Connection:
    """Get the database connection."""
    if _db_connection is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _db_connection


async def _create_schema(db: aiosqlite.Connection) -> None:
    """Create database tables and indexes."""
    # Provider connections (one per user and tool)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS connections (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            tool TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            config_json TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            last_synced_at TEXT,
            UNIQUE(user_id, tool)
        )
    """)

    # Workflows carry two generations of identity key while the
    # (provider, external_id) scheme replaces (connection_id, tool_workflow_id)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS workflows (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            connection_id TEXT NOT NULL,
            tool_workflow_id TEXT,
            provider TEXT,
            external_id TEXT,
            name TEXT NOT NULL,
            status TEXT NOT NULL,
            trigger_type TEXT,
            actions_json TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            last_synced_at TEXT,
            FOREIGN KEY (connection_id) REFERENCES connections(id) ON DELETE CASCADE,
            CHECK (tool_workflow_id IS NOT NULL OR (provider IS NOT NULL AND external_id IS NOT NULL))
        )
    """)

    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_workflows_legacy_key
        ON workflows(connection_id, tool_workflow_id)
    """)

    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_workflows_current_key
        ON workflows(provider, external_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_workflows_user
        ON workflows(user_id, updated_at)
    """)

    # Append-only sync audit trail
    await db.execute("""
        CREATE TABLE IF NOT EXISTS sync_logs (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            connection_id TEXT NOT NULL,
            status TEXT NOT NULL,
            workflows_count INTEGER,
            error_message TEXT,
            synced_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (connection_id) REFERENCES connections(id) ON DELETE CASCADE
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_sync_logs_connection
        ON sync_logs(connection_id, synced_at)
    """)

    await db.commit()
