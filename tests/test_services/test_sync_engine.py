"""Tests for the SyncEngine three-tier reconciliation."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from automation_governance.db import PersistenceConflictError, connection_store, workflow_store
from automation_governance.models import (
    AutomationProvider,
    SyncStatus,
    Workflow,
    WorkflowRecordWrite,
)
from automation_governance.providers import N8nAdapter
from automation_governance.services.sync_engine import (
    ReconcileAction,
    SyncEngine,
    build_actions,
    find_trigger_node,
)
from conftest import TEST_USER_ID, insert_legacy_workflow, n8n_workflow

FETCH_PATH = "automation_governance.providers.transport.fetch_provider_api"


def _api_response(workflows: list[dict], status_code: int = 200) -> AsyncMock:
    return AsyncMock(
        return_value=httpx.Response(
            status_code,
            json={"data": workflows},
            request=httpx.Request("GET", "https://n8n.example.com/rest/workflows"),
        )
    )


def _normalize(raw: dict, connection_id: str) -> Workflow:
    return N8nAdapter().normalize_workflow(raw, connection_id)


class TestBuildActions:
    """Tests for the stored actions document."""

    def test_legacy_shape_and_graph(self):
        workflow = _normalize(n8n_workflow(), "c")

        actions = build_actions(workflow)

        assert actions["nodes"][0] == {
            "id": "n1",
            "name": "Webhook",
            "type": "n8n-nodes-base.webhook",
            "position": [0, 0],
        }
        assert actions["connections"] == {
            "n1": {"main": [[{"node": "n2", "type": "main", "index": 0}]]},
            "n2": {"main": [[{"node": "n3", "type": "main", "index": 0}]]},
        }
        assert actions["graph"]["edges"] == [
            {"from": "n1", "to": "n2"},
            {"from": "n2", "to": "n3"},
        ]

    def test_fan_out_shares_one_slot(self):
        raw = n8n_workflow(
            connections={
                "Webhook": {
                    "main": [
                        [
                            {"node": "Fetch", "type": "main", "index": 0},
                            {"node": "Notify", "type": "main", "index": 0},
                        ]
                    ]
                }
            }
        )

        actions = build_actions(_normalize(raw, "c"))

        assert len(actions["connections"]["n1"]["main"][0]) == 2

    def test_trigger_node(self):
        workflow = _normalize(n8n_workflow(), "c")

        assert find_trigger_node(workflow).type == "n8n-nodes-base.webhook"

    def test_no_trigger_node(self):
        raw = n8n_workflow(nodes=[{"id": "a", "name": "A", "type": "n8n-nodes-base.set"}])

        assert find_trigger_node(_normalize(raw, "c")) is None


class TestReconcile:
    """Tests for the individual reconciliation tiers."""

    @pytest.mark.asyncio
    async def test_create_sets_both_keys(self, n8n_connection):
        engine = SyncEngine()
        workflow = _normalize(n8n_workflow(), n8n_connection.id)

        action = await engine.reconcile(workflow, n8n_connection)

        assert action == ReconcileAction.CREATED
        record = await workflow_store.find_by_current_key(AutomationProvider.N8N, "wf-1")
        assert record.tool_workflow_id == "wf-1"
        assert record.external_id == "wf-1"
        assert record.connection_id == n8n_connection.id
        assert record.user_id == TEST_USER_ID
        assert record.status == "active"
        assert record.trigger_type == "n8n-nodes-base.webhook"

    @pytest.mark.asyncio
    async def test_second_write_updates(self, n8n_connection):
        engine = SyncEngine()
        await engine.reconcile(_normalize(n8n_workflow(), n8n_connection.id), n8n_connection)

        renamed = _normalize(n8n_workflow(name="Renamed", active=False), n8n_connection.id)
        action = await engine.reconcile(renamed, n8n_connection)

        assert action == ReconcileAction.UPDATED
        record = await workflow_store.find_by_current_key(AutomationProvider.N8N, "wf-1")
        assert record.name == "Renamed"
        assert record.status == "inactive"
        assert await workflow_store.count_workflows() == 1

    @pytest.mark.asyncio
    async def test_legacy_row_is_migrated(self, n8n_connection):
        row_id = await insert_legacy_workflow(n8n_connection.id, "wf-1")
        engine = SyncEngine()
        workflow = _normalize(n8n_workflow(), n8n_connection.id)

        first = await engine.reconcile(workflow, n8n_connection)
        second = await engine.reconcile(workflow, n8n_connection)

        assert first == ReconcileAction.MIGRATED
        assert second == ReconcileAction.UPDATED
        record = await workflow_store.find_by_current_key(AutomationProvider.N8N, "wf-1")
        assert record.id == row_id
        assert record.tool_workflow_id == "wf-1"
        assert record.name == "Stripe to Slack"
        assert await workflow_store.count_workflows() == 1

    @pytest.mark.asyncio
    async def test_migrated_rows_take_current_key_path(self, n8n_connection):
        await insert_legacy_workflow(n8n_connection.id, "wf-1")
        engine = SyncEngine()
        workflow = _normalize(n8n_workflow(), n8n_connection.id)
        await engine.reconcile(workflow, n8n_connection)

        with (
            patch.object(
                workflow_store,
                "find_by_legacy_key",
                wraps=workflow_store.find_by_legacy_key,
            ) as legacy_lookup,
            patch.object(
                workflow_store,
                "create",
                wraps=workflow_store.create,
            ) as create,
        ):
            await engine.reconcile(workflow, n8n_connection)

        legacy_lookup.assert_not_awaited()
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unique_key_race_raises_conflict(self, n8n_connection):
        """Moving a workflow onto a connection that still holds its legacy row conflicts."""
        other = await connection_store.upsert_connection(
            "other-user", AutomationProvider.N8N, {"baseUrl": "https://other.example.com"}
        )
        workflow = _normalize(n8n_workflow(), n8n_connection.id)
        await workflow_store.create(
            "other-user",
            AutomationProvider.N8N,
            "wf-1",
            WorkflowRecordWrite(
                name="Elsewhere",
                status="active",
                actions=build_actions(workflow),
                connection_id=other.id,
                last_synced_at=datetime.now(timezone.utc),
            ),
        )
        await insert_legacy_workflow(n8n_connection.id, "wf-1")

        with pytest.raises(PersistenceConflictError):
            await SyncEngine().reconcile(workflow, n8n_connection)


class TestSyncConnection:
    """Tests for whole-connection syncs."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("runs", [1, 2, 5])
    async def test_replays_never_duplicate(self, n8n_connection, runs):
        payloads = [n8n_workflow("wf-1"), n8n_workflow("wf-2", name="Daily digest")]

        with patch(FETCH_PATH, _api_response(payloads)):
            for _ in range(runs):
                result = await N8nAdapter().sync_workflows(n8n_connection)
                assert result.success is True
                assert result.synced == 2

        assert await workflow_store.count_workflows() == 2
        logs = await workflow_store.list_sync_logs(n8n_connection.id)
        assert len(logs) == runs
        assert all(log.status == SyncStatus.SUCCESS for log in logs)
        assert all(log.workflows_count == 2 for log in logs)

    @pytest.mark.asyncio
    async def test_sync_touches_connection(self, n8n_connection):
        with patch(FETCH_PATH, _api_response([n8n_workflow()])):
            await N8nAdapter().sync_workflows(n8n_connection)

        connection = await connection_store.get_connection(n8n_connection.id)
        assert connection.last_synced_at is not None

    @pytest.mark.asyncio
    async def test_migration_converges(self, n8n_connection):
        await insert_legacy_workflow(n8n_connection.id, "wf-1")
        await insert_legacy_workflow(n8n_connection.id, "wf-2")

        with patch(FETCH_PATH, _api_response([n8n_workflow("wf-1"), n8n_workflow("wf-2")])):
            await N8nAdapter().sync_workflows(n8n_connection)
            await N8nAdapter().sync_workflows(n8n_connection)

        records = await workflow_store.list_workflows(connection_id=n8n_connection.id)
        assert len(records) == 2
        for record in records:
            assert record.provider == AutomationProvider.N8N
            assert record.external_id == record.tool_workflow_id

    @pytest.mark.asyncio
    async def test_invalid_payloads_are_skipped(self, n8n_connection):
        payloads = [n8n_workflow("wf-1"), {"name": "No id"}, "garbage"]

        with patch(FETCH_PATH, _api_response(payloads)):
            result = await N8nAdapter().sync_workflows(n8n_connection)

        assert result.success is True
        assert result.synced == 1
        logs = await workflow_store.list_sync_logs(n8n_connection.id)
        assert logs[0].workflows_count == 1

    @pytest.mark.asyncio
    async def test_malformed_node_fields_do_not_abort_batch(self, n8n_connection):
        odd = n8n_workflow(
            "wf-2",
            name="Odd nodes",
            nodes=[{"id": "a", "name": "A", "type": 7}],
            connections={},
            createdAt=1704067200000,
        )

        with patch(FETCH_PATH, _api_response([n8n_workflow("wf-1"), odd, n8n_workflow("wf-3")])):
            result = await N8nAdapter().sync_workflows(n8n_connection)

        assert result.success is True
        assert result.synced == 3
        record = await workflow_store.find_by_current_key(AutomationProvider.N8N, "wf-2")
        assert record.actions["graph"]["nodes"][0]["type"] == "unknown"
        logs = await workflow_store.list_sync_logs(n8n_connection.id)
        assert logs[0].status == SyncStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_malformed_payload_list_logs_error(self, n8n_connection):
        mock_fetch = AsyncMock(
            return_value=httpx.Response(
                200,
                json={"data": {"wf-1": n8n_workflow()}},
                request=httpx.Request("GET", "https://n8n.example.com/rest/workflows"),
            )
        )

        with patch(FETCH_PATH, mock_fetch):
            result = await N8nAdapter().sync_workflows(n8n_connection)

        assert result.success is False
        logs = await workflow_store.list_sync_logs(n8n_connection.id)
        assert [log.status for log in logs] == [SyncStatus.ERROR]

    @pytest.mark.asyncio
    async def test_fetch_failure_logs_error(self, n8n_connection):
        with patch(FETCH_PATH, _api_response([], status_code=500)):
            result = await N8nAdapter().sync_workflows(n8n_connection)

        assert result.success is False
        assert result.synced == 0
        assert result.error == "n8n API responded with status 500"
        assert await workflow_store.count_workflows() == 0

        logs = await workflow_store.list_sync_logs(n8n_connection.id)
        assert len(logs) == 1
        assert logs[0].status == SyncStatus.ERROR
        assert logs[0].workflows_count == 0
        assert logs[0].error_message == "n8n API responded with status 500"

    @pytest.mark.asyncio
    async def test_mid_batch_failure_keeps_earlier_writes(self, n8n_connection):
        original_create = workflow_store.create
        calls = 0

        async def flaky_create(*args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise PersistenceConflictError("Workflow identity conflict")
            return await original_create(*args, **kwargs)

        payloads = [n8n_workflow("wf-1"), n8n_workflow("wf-2"), n8n_workflow("wf-3")]
        with (
            patch(FETCH_PATH, _api_response(payloads)),
            patch.object(workflow_store, "create", side_effect=flaky_create),
        ):
            result = await N8nAdapter().sync_workflows(n8n_connection)

        assert result.success is False
        assert result.synced == 0
        assert result.error == "Workflow identity conflict"
        # No rollback: the first workflow stays written, the third is never attempted
        assert await workflow_store.count_workflows() == 1
        assert await workflow_store.find_by_current_key(AutomationProvider.N8N, "wf-3") is None

        logs = await workflow_store.list_sync_logs(n8n_connection.id)
        assert [log.status for log in logs] == [SyncStatus.ERROR]
        assert logs[0].workflows_count == 0

        connection = await connection_store.get_connection(n8n_connection.id)
        assert connection.last_synced_at is None

    @pytest.mark.asyncio
    async def test_error_log_failure_is_swallowed(self, n8n_connection):
        failing_log = AsyncMock(side_effect=RuntimeError("database is locked"))

        with (
            patch(FETCH_PATH, _api_response([], status_code=503)),
            patch.object(workflow_store, "create_log", failing_log),
        ):
            result = await N8nAdapter().sync_workflows(n8n_connection)

        assert result.success is False
        assert result.error == "n8n API responded with status 503"
        failing_log.assert_awaited_once()
