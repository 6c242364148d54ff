"""Pytest configuration and fixtures."""

import json
import os
import tempfile
from typing import Any, AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from automation_governance.db import connection_store
from automation_governance.db.database import close_database, get_db, init_database
from automation_governance.main import app
from automation_governance.models import AutomationProvider, ProviderConnection

TEST_USER_ID = "demo-user"


@pytest.fixture
async def setup_test_db() -> AsyncGenerator[str, None]:
    """Set up a fresh SQLite database for one test."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    await init_database(db_path)

    yield db_path

    await close_database()
    os.unlink(db_path)


@pytest.fixture
async def client(setup_test_db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
async def n8n_connection(setup_test_db) -> ProviderConnection:
    """An active n8n connection for the test user."""
    return await connection_store.upsert_connection(
        TEST_USER_ID,
        AutomationProvider.N8N,
        {"baseUrl": "https://n8n.example.com"},
    )


@pytest.fixture
async def make_connection(setup_test_db) -> ProviderConnection:
    """An active Make connection for the test user."""
    return await connection_store.upsert_connection(
        TEST_USER_ID,
        AutomationProvider.MAKE,
        {"baseUrl": "https://eu1.make.com"},
    )


async def insert_legacy_workflow(
    connection_id: str,
    tool_workflow_id: str,
    name: str = "Legacy workflow",
    actions: dict[str, Any] | None = None,
    user_id: str = TEST_USER_ID,
) -> str:
    """Insert a row the way syncs wrote it before provider/external_id existed."""
    db = await get_db()
    row_id = f"legacy-{tool_workflow_id}"
    await db.execute(
        """
        INSERT INTO workflows (
            id, user_id, connection_id, tool_workflow_id, name, status, actions_json
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            row_id,
            user_id,
            connection_id,
            tool_workflow_id,
            name,
            "active",
            json.dumps(actions) if actions is not None else None,
        ],
    )
    await db.commit()
    return row_id


def n8n_workflow(
    workflow_id: str = "wf-1",
    name: str = "Stripe to Slack",
    active: bool = True,
    **overrides: Any,
) -> dict[str, Any]:
    """A raw n8n workflow payload: webhook -> HTTP request -> Slack."""
    payload: dict[str, Any] = {
        "id": workflow_id,
        "name": name,
        "active": active,
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": "2024-01-02T00:00:00.000Z",
        "nodes": [
            {"id": "n1", "name": "Webhook", "type": "n8n-nodes-base.webhook"},
            {"id": "n2", "name": "Fetch", "type": "n8n-nodes-base.httpRequest"},
            {"id": "n3", "name": "Notify", "type": "n8n-nodes-base.slack"},
        ],
        "connections": {
            "Webhook": {"main": [[{"node": "Fetch", "type": "main", "index": 0}]]},
            "Fetch": {"main": [[{"node": "Notify", "type": "main", "index": 0}]]},
        },
    }
    payload.update(overrides)
    return payload
