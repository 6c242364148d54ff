"""Database operations for provider connections."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from automation_governance.db.database import get_db
from automation_governance.models import (
    AutomationProvider,
    ConnectionStatus,
    ProviderConnection,
    provider_to_tool,
    tool_to_provider,
)


def _row_to_connection(row: aiosqlite.Row) -> ProviderConnection:
    """Convert a database row to a ProviderConnection model."""
    config = json.loads(row["config_json"] or "{}")

    return ProviderConnection(
        id=row["id"],
        provider=tool_to_provider(row["tool"]),
        user_id=row["user_id"],
        status=ConnectionStatus(row["status"]),
        config=config if isinstance(config, dict) else {},
        last_synced_at=(
            datetime.fromisoformat(row["last_synced_at"]) if row["last_synced_at"] else None
        ),
    )


async def get_connection(connection_id: str) -> ProviderConnection | None:
    """Get a connection by ID."""
    db = await get_db()

    cursor = await db.execute(
        "SELECT * FROM connections WHERE id = ?",
        [connection_id],
    )
    row = await cursor.fetchone()

    return _row_to_connection(row) if row else None


async def get_connection_for_user(
    provider: AutomationProvider, user_id: str
) -> ProviderConnection | None:
    """Get a user's connection to a provider regardless of its status."""
    db = await get_db()

    cursor = await db.execute(
        "SELECT * FROM connections WHERE user_id = ? AND tool = ?",
        [user_id, provider_to_tool(provider).value],
    )
    row = await cursor.fetchone()

    return _row_to_connection(row) if row else None


async def get_provider_connection(
    provider: AutomationProvider, user_id: str
) -> ProviderConnection | None:
    """Get a connection that is ready to sync.

    Returns None unless the connection is ACTIVE and its config has a baseUrl.
    """
    connection = await get_connection_for_user(provider, user_id)
    if not connection or connection.status != ConnectionStatus.ACTIVE:
        return None
    if not connection.config or not connection.config.get("baseUrl"):
        return None
    return connection


async def list_connections(user_id: str) -> list[ProviderConnection]:
    """List all connections for a user."""
    db = await get_db()

    cursor = await db.execute(
        "SELECT * FROM connections WHERE user_id = ? ORDER BY tool ASC",
        [user_id],
    )
    rows = await cursor.fetchall()

    return [_row_to_connection(row) for row in rows]


async def upsert_connection(
    user_id: str,
    provider: AutomationProvider,
    config: dict[str, Any],
    status: ConnectionStatus = ConnectionStatus.ACTIVE,
) -> ProviderConnection:
    """Create or replace a user's connection to a provider."""
    db = await get_db()
    now = datetime.now(timezone.utc).isoformat()

    existing = await get_connection_for_user(provider, user_id)
    if existing:
        await db.execute(
            """
            UPDATE connections
            SET config_json = ?, status = ?, updated_at = ?
            WHERE id = ?
            """,
            [json.dumps(config), status.value, now, existing.id],
        )
        connection_id = existing.id
    else:
        connection_id = str(uuid.uuid4())
        await db.execute(
            """
            INSERT INTO connections (
                id, user_id, tool, status, config_json, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                connection_id,
                user_id,
                provider_to_tool(provider).value,
                status.value,
                json.dumps(config),
                now,
                now,
            ],
        )
    await db.commit()

    return await get_connection(connection_id)  # type: ignore
