"""WorkflowStore - keyed storage for synced workflows and the sync audit trail.

Workflow rows are addressable by two unique keys while the identity scheme is
migrated live:
    legacy key:  (connection_id, tool_workflow_id)
    current key: (provider, external_id)
"""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from automation_governance.db.database import get_db
from automation_governance.models import (
    AutomationProvider,
    SyncLogEntry,
    SyncLogEntryCreate,
    ToolType,
    Workflow,
    WorkflowGraph,
    WorkflowGraphEdge,
    WorkflowGraphNode,
    WorkflowRecord,
    WorkflowRecordWrite,
    classify_node_kind,
    provider_to_tool,
    tool_to_provider,
)

_SELECT_WORKFLOW = """
    SELECT w.*, c.tool AS connection_tool
    FROM workflows w
    LEFT JOIN connections c ON c.id = w.connection_id
"""


class PersistenceConflictError(Exception):
    """A write hit one of the workflow uniqueness constraints."""

    pass


def _generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def _now() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_record(row: aiosqlite.Row) -> WorkflowRecord:
    """Convert a database row to a WorkflowRecord model."""
    actions = json.loads(row["actions_json"]) if row["actions_json"] else None
    keys = row.keys()

    return WorkflowRecord(
        id=row["id"],
        user_id=row["user_id"],
        connection_id=row["connection_id"],
        tool_workflow_id=row["tool_workflow_id"],
        provider=row["provider"],
        external_id=row["external_id"],
        name=row["name"],
        status=row["status"],
        trigger_type=row["trigger_type"],
        actions=actions if isinstance(actions, dict) else None,
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
        last_synced_at=_parse_ts(row["last_synced_at"]),
        connection_tool=row["connection_tool"] if "connection_tool" in keys else None,
    )


def _row_to_log(row: aiosqlite.Row) -> SyncLogEntry:
    return SyncLogEntry(
        id=row["id"],
        connection_id=row["connection_id"],
        user_id=row["user_id"],
        status=row["status"],
        workflows_count=row["workflows_count"] or 0,
        error_message=row["error_message"],
        synced_at=_parse_ts(row["synced_at"]),
    )


class WorkflowStore:
    """Storage abstraction for workflow records and sync logs."""

    # ==================== Lookups ====================

    async def find_by_current_key(
        self, provider: AutomationProvider, external_id: str
    ) -> WorkflowRecord | None:
        """Find a workflow by (provider, external_id)."""
        db = await get_db()
        cursor = await db.execute(
            f"{_SELECT_WORKFLOW} WHERE w.provider = ? AND w.external_id = ?",
            (provider.value, external_id),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def find_by_legacy_key(
        self, connection_id: str, tool_workflow_id: str
    ) -> WorkflowRecord | None:
        """Find a workflow by (connection_id, tool_workflow_id)."""
        db = await get_db()
        cursor = await db.execute(
            f"{_SELECT_WORKFLOW} WHERE w.connection_id = ? AND w.tool_workflow_id = ?",
            (connection_id, tool_workflow_id),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def find_for_display(
        self, provider: AutomationProvider, external_id: str
    ) -> WorkflowRecord | None:
        """Find a workflow by current key, falling back to not-yet-migrated rows.

        Legacy rows have no provider column, so the provider is taken from the
        owning connection's tool.
        """
        record = await self.find_by_current_key(provider, external_id)
        if record:
            return record

        db = await get_db()
        cursor = await db.execute(
            f"""{_SELECT_WORKFLOW}
            WHERE w.provider IS NULL AND w.tool_workflow_id = ? AND c.tool = ?
            """,
            (external_id, provider_to_tool(provider).value),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def list_workflows(
        self,
        user_id: str | None = None,
        provider: AutomationProvider | None = None,
        connection_id: str | None = None,
        tool: ToolType | None = None,
    ) -> list[WorkflowRecord]:
        """List workflows, newest first, with optional filters.

        `provider` matches the provider column; `tool` matches the owning
        connection's tool and also covers legacy rows.
        """
        conditions = []
        params: list[Any] = []

        if user_id:
            conditions.append("w.user_id = ?")
            params.append(user_id)
        if provider:
            conditions.append("w.provider = ?")
            params.append(provider.value)
        elif tool:
            conditions.append("c.tool = ?")
            params.append(tool.value)
        if connection_id:
            conditions.append("w.connection_id = ?")
            params.append(connection_id)

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        db = await get_db()
        cursor = await db.execute(
            f"{_SELECT_WORKFLOW} WHERE {where_clause} ORDER BY w.updated_at DESC",
            params,
        )
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def count_workflows(
        self,
        provider: AutomationProvider | None = None,
        external_id: str | None = None,
    ) -> int:
        """Count workflow rows, optionally for one current key."""
        conditions = []
        params: list[Any] = []
        if provider:
            conditions.append("provider = ?")
            params.append(provider.value)
        if external_id:
            conditions.append("external_id = ?")
            params.append(external_id)
        where_clause = " AND ".join(conditions) if conditions else "1=1"

        db = await get_db()
        cursor = await db.execute(f"SELECT COUNT(*) FROM workflows WHERE {where_clause}", params)
        row = await cursor.fetchone()
        return row[0] if row else 0

    # ==================== Writes ====================

    async def update_by_current_key(
        self,
        provider: AutomationProvider,
        external_id: str,
        data: WorkflowRecordWrite,
    ) -> None:
        """Update the row owning (provider, external_id)."""
        await self._execute_write(
            """
            UPDATE workflows
            SET name = ?, status = ?, trigger_type = ?, actions_json = ?,
                connection_id = ?, last_synced_at = ?, updated_at = ?
            WHERE provider = ? AND external_id = ?
            """,
            [*self._write_params(data), _now(), provider.value, external_id],
        )

    async def update_by_legacy_key(
        self,
        connection_id: str,
        tool_workflow_id: str,
        data: WorkflowRecordWrite,
        provider: AutomationProvider,
        external_id: str,
    ) -> None:
        """Update the row owning (connection_id, tool_workflow_id) and backfill its current key."""
        await self._execute_write(
            """
            UPDATE workflows
            SET name = ?, status = ?, trigger_type = ?, actions_json = ?,
                connection_id = ?, last_synced_at = ?, updated_at = ?,
                provider = ?, external_id = ?
            WHERE connection_id = ? AND tool_workflow_id = ?
            """,
            [
                *self._write_params(data),
                _now(),
                provider.value,
                external_id,
                connection_id,
                tool_workflow_id,
            ],
        )

    async def create(
        self,
        user_id: str,
        provider: AutomationProvider,
        external_id: str,
        data: WorkflowRecordWrite,
    ) -> str:
        """Create a row populating both key generations. Returns the row id."""
        workflow_id = _generate_id()
        now = _now()
        await self._execute_write(
            """
            INSERT INTO workflows (
                id, user_id, connection_id, tool_workflow_id, provider, external_id,
                name, status, trigger_type, actions_json, last_synced_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                workflow_id,
                user_id,
                data.connection_id,
                external_id,  # tool_workflow_id mirrors external_id
                provider.value,
                external_id,
                data.name,
                data.status,
                data.trigger_type,
                json.dumps(data.actions),
                data.last_synced_at.isoformat(),
                now,
                now,
            ],
        )
        return workflow_id

    async def _execute_write(self, query: str, params: list[Any]) -> None:
        db = await get_db()
        try:
            await db.execute(query, params)
        except sqlite3.IntegrityError as e:
            await db.rollback()
            raise PersistenceConflictError(f"Workflow identity conflict: {e}") from e
        await db.commit()

    @staticmethod
    def _write_params(data: WorkflowRecordWrite) -> list[Any]:
        return [
            data.name,
            data.status,
            data.trigger_type,
            json.dumps(data.actions),
            data.connection_id,
            data.last_synced_at.isoformat(),
        ]

    # ==================== Connections & Sync Logs ====================

    async def touch_connection(self, connection_id: str, synced_at: datetime) -> None:
        """Record when a connection was last synced."""
        db = await get_db()
        await db.execute(
            "UPDATE connections SET last_synced_at = ?, updated_at = ? WHERE id = ?",
            [synced_at.isoformat(), _now(), connection_id],
        )
        await db.commit()

    async def create_log(self, entry: SyncLogEntryCreate) -> SyncLogEntry:
        """Append a sync log entry."""
        db = await get_db()
        log_id = _generate_id()
        now = _now()

        await db.execute(
            """
            INSERT INTO sync_logs (
                id, user_id, connection_id, status, workflows_count, error_message, synced_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                log_id,
                entry.user_id,
                entry.connection_id,
                entry.status.value,
                entry.workflows_count,
                entry.error_message,
                now,
            ],
        )
        await db.commit()

        return SyncLogEntry(id=log_id, synced_at=datetime.fromisoformat(now), **entry.model_dump())

    async def list_sync_logs(self, connection_id: str, limit: int = 50) -> list[SyncLogEntry]:
        """List sync log entries for a connection, newest first."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT * FROM sync_logs
            WHERE connection_id = ?
            ORDER BY synced_at DESC, rowid DESC
            LIMIT ?
            """,
            [connection_id, limit],
        )
        rows = await cursor.fetchall()
        return [_row_to_log(row) for row in rows]


# ==================== Record -> canonical Workflow ====================


def _parse_graph_node(value: Any) -> WorkflowGraphNode | None:
    if not isinstance(value, dict):
        return None
    if not all(isinstance(value.get(k), str) for k in ("id", "label", "type")):
        return None
    try:
        return WorkflowGraphNode.model_validate({**value, "kind": value.get("kind") or "other"})
    except ValueError:
        return None


def _parse_graph_edge(value: Any) -> WorkflowGraphEdge | None:
    if not isinstance(value, dict):
        return None
    if not isinstance(value.get("from"), str) or not isinstance(value.get("to"), str):
        return None
    return WorkflowGraphEdge(from_id=value["from"], to_id=value["to"])


def _graph_from_actions(actions: dict[str, Any]) -> WorkflowGraph:
    """Rebuild a graph from stored actions.

    Rows written by the current sync carry a `graph`; older rows only carry
    n8n-style `nodes` + `connections`, whose edges keep source names as ids.
    """
    stored = actions.get("graph")
    if isinstance(stored, dict):
        nodes = [n for n in map(_parse_graph_node, stored.get("nodes") or []) if n]
        edges = [e for e in map(_parse_graph_edge, stored.get("edges") or []) if e]
        return WorkflowGraph(nodes=tuple(nodes), edges=tuple(edges))

    nodes = []
    for raw in actions.get("nodes") or []:
        if not isinstance(raw, dict):
            continue
        name, node_type = raw.get("name"), raw.get("type")
        if not isinstance(name, str) or not isinstance(node_type, str):
            continue
        node_id = raw.get("id") if isinstance(raw.get("id"), str) else name
        nodes.append(
            WorkflowGraphNode(
                id=node_id, label=name, kind=classify_node_kind(node_type), type=node_type
            )
        )

    edges = []
    connections = actions.get("connections")
    if isinstance(connections, dict):
        for source_name, conn in connections.items():
            if not isinstance(conn, dict):
                continue
            for slot in conn.get("main") or []:
                for ref in slot or []:
                    if isinstance(ref, dict) and isinstance(ref.get("node"), str):
                        edges.append(WorkflowGraphEdge(from_id=source_name, to_id=ref["node"]))

    return WorkflowGraph(nodes=tuple(nodes), edges=tuple(edges))


def to_workflow(record: WorkflowRecord) -> Workflow:
    """Convert a stored record into the canonical Workflow.

    Prefers the current-key columns and falls back to the legacy ones, so rows
    written before the migration still read back correctly.
    """
    provider = record.provider or tool_to_provider(record.connection_tool)
    workflow_id = record.external_id or record.tool_workflow_id or record.id

    return Workflow(
        id=workflow_id,
        name=record.name,
        active=record.status == "active",
        provider=provider,
        connection_id=record.connection_id,
        graph=_graph_from_actions(record.actions or {}),
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
    )


workflow_store = WorkflowStore()
