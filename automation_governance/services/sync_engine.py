"""SyncEngine - Persists normalized workflows for one provider connection.

Workflow rows are being migrated from the legacy (connection_id, tool_workflow_id)
key to the (provider, external_id) key. Every sync reconciles each workflow in
three tiers:
1. Match by current key -> update in place
2. Match by legacy key -> update in place and backfill the current key
3. No match -> create a row carrying both keys

Once a row is migrated every later sync takes tier 1, so replays never
duplicate rows.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from automation_governance.db.workflow_store import WorkflowStore, workflow_store
from automation_governance.models import (
    LegacyOnly,
    Migrated,
    ProviderConnection,
    SyncLogEntryCreate,
    SyncStatus,
    SyncWorkflowsResult,
    Workflow,
    WorkflowGraphNode,
    WorkflowRecordWrite,
)
from automation_governance.models.graph import TRIGGER_TYPE_MARKERS

if TYPE_CHECKING:
    from automation_governance.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    """Which reconciliation tier handled a workflow."""

    UPDATED = "updated"  # Matched by current key
    MIGRATED = "migrated"  # Matched by legacy key, current key backfilled
    CREATED = "created"


def find_trigger_node(workflow: Workflow) -> WorkflowGraphNode | None:
    """First node whose type names a trigger or webhook."""
    if not workflow.graph:
        return None
    for node in workflow.graph.nodes:
        node_type = node.type.lower()
        if any(marker in node_type for marker in TRIGGER_TYPE_MARKERS):
            return node
    return None


def build_actions(workflow: Workflow) -> dict[str, Any]:
    """Build the stored actions document.

    Keeps the legacy n8n-style {nodes, connections} shape for older readers
    next to the canonical graph. Legacy connections are keyed by source node id.
    """
    graph = workflow.graph
    nodes = [
        {"id": node.id, "name": node.label, "type": node.type, "position": [0, 0]}
        for node in (graph.nodes if graph else ())
    ]

    connections: dict[str, dict[str, list[list[dict[str, Any]]]]] = {}
    for edge in graph.edges if graph else ():
        source = connections.setdefault(edge.from_id, {"main": [[]]})
        source["main"][0].append({"node": edge.to_id, "type": "main", "index": 0})

    actions: dict[str, Any] = {"nodes": nodes, "connections": connections}
    if graph:
        actions["graph"] = graph.to_json_dict()
    return actions


class SyncEngine:
    """Reconciles normalized workflows against the workflow store.

    The engine holds no state between calls; each sync processes one
    connection's batch sequentially.
    """

    def __init__(self, store: WorkflowStore | None = None) -> None:
        self._store = store or workflow_store

    def _record_write(
        self, workflow: Workflow, connection: ProviderConnection, synced_at: datetime
    ) -> WorkflowRecordWrite:
        trigger = find_trigger_node(workflow)
        return WorkflowRecordWrite(
            name=workflow.name,
            status="active" if workflow.active else "inactive",
            trigger_type=trigger.type if trigger else None,
            actions=build_actions(workflow),
            connection_id=connection.id,
            last_synced_at=synced_at,
        )

    async def reconcile(
        self,
        workflow: Workflow,
        connection: ProviderConnection,
        synced_at: datetime | None = None,
    ) -> ReconcileAction:
        """Write one workflow through the three-tier lookup.

        Raises:
            PersistenceConflictError: If a concurrent writer claimed one of the keys.
        """
        data = self._record_write(workflow, connection, synced_at or datetime.now(timezone.utc))

        # Tier 1: current key
        current = await self._store.find_by_current_key(workflow.provider, workflow.id)
        if current:
            await self._store.update_by_current_key(workflow.provider, workflow.id, data)
            return ReconcileAction.UPDATED

        # Tier 2: legacy key
        legacy = await self._store.find_by_legacy_key(connection.id, workflow.id)
        if legacy:
            match legacy.identity:
                case LegacyOnly():
                    logger.info(
                        f"Migrating workflow {legacy.id} to key "
                        f"{workflow.provider.value}/{workflow.id}"
                    )
                case Migrated(provider=old_provider, external_id=old_external_id):
                    logger.warning(
                        f"Re-keying workflow {legacy.id} from "
                        f"{old_provider.value}/{old_external_id} to "
                        f"{workflow.provider.value}/{workflow.id}"
                    )
            await self._store.update_by_legacy_key(
                connection.id, workflow.id, data, workflow.provider, workflow.id
            )
            return ReconcileAction.MIGRATED

        # Tier 3: create with both keys
        await self._store.create(connection.user_id, workflow.provider, workflow.id, data)
        return ReconcileAction.CREATED

    async def sync_connection(
        self, adapter: ProviderAdapter, connection: ProviderConnection
    ) -> SyncWorkflowsResult:
        """Fetch, normalize and persist every workflow of a connection.

        Appends exactly one sync log entry per call. Writes issued before a
        mid-batch failure are kept.
        """
        provider = adapter.provider.value
        logger.info(f"Syncing {provider} workflows for connection {connection.id}")

        fetched = await adapter.fetch_workflows(connection)
        if not fetched.success:
            error = fetched.error or f"Failed to fetch {adapter.display_name} workflows"
            await self._log_failure(connection, error)
            return SyncWorkflowsResult(success=False, synced=0, error=error)

        synced_at = datetime.now(timezone.utc)
        actions: Counter[ReconcileAction] = Counter()

        try:
            for raw in fetched.workflows:
                workflow = adapter.normalize_workflow(raw, connection.id)
                if workflow is None:
                    logger.debug(f"Skipping {provider} payload without id or name")
                    continue
                action = await self.reconcile(workflow, connection, synced_at)
                actions[action] += 1

            synced = sum(actions.values())
            await self._store.touch_connection(connection.id, synced_at)
            await self._store.create_log(
                SyncLogEntryCreate(
                    connection_id=connection.id,
                    user_id=connection.user_id,
                    status=SyncStatus.SUCCESS,
                    workflows_count=synced,
                )
            )
        except Exception as e:
            logger.exception(f"Sync failed for connection {connection.id}: {e}")
            error = str(e) or type(e).__name__
            await self._log_failure(connection, error)
            return SyncWorkflowsResult(success=False, synced=0, error=error)

        logger.info(
            f"Synced {synced} {provider} workflows for connection {connection.id} "
            f"(updated={actions[ReconcileAction.UPDATED]}, "
            f"migrated={actions[ReconcileAction.MIGRATED]}, "
            f"created={actions[ReconcileAction.CREATED]})"
        )
        return SyncWorkflowsResult(success=True, synced=synced)

    async def _log_failure(self, connection: ProviderConnection, error: str) -> None:
        """Append an ERROR log; a failure to do so must not mask the original error."""
        try:
            await self._store.create_log(
                SyncLogEntryCreate(
                    connection_id=connection.id,
                    user_id=connection.user_id,
                    status=SyncStatus.ERROR,
                    workflows_count=0,
                    error_message=error,
                )
            )
        except Exception as log_error:
            logger.error(f"Failed to write sync log for connection {connection.id}: {log_error}")
