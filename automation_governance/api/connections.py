"""API routes for provider connections and their sync history."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from automation_governance.api.dependencies import get_user_id
from automation_governance.db import connection_store, workflow_store
from automation_governance.models import (
    AutomationProvider,
    ConnectionStatus,
    ProviderConnection,
    SyncLogEntry,
)

router = APIRouter(prefix="/connections", tags=["connections"])


class ConnectionUpdate(BaseModel):
    """Provider settings, e.g. {"baseUrl": "https://n8n.example.com"}."""

    config: dict[str, Any] = Field(default_factory=dict)
    status: ConnectionStatus = ConnectionStatus.ACTIVE


@router.get("", response_model=list[ProviderConnection])
async def list_connections(user_id: Annotated[str, Depends(get_user_id)]):
    """List the current user's provider connections."""
    return await connection_store.list_connections(user_id)


@router.put("/{provider}", response_model=ProviderConnection)
async def put_connection(
    provider: AutomationProvider,
    data: ConnectionUpdate,
    user_id: Annotated[str, Depends(get_user_id)],
):
    """Create or replace the current user's connection to a provider."""
    if data.status == ConnectionStatus.ACTIVE and not data.config.get("baseUrl"):
        raise HTTPException(status_code=400, detail="config.baseUrl is required")

    return await connection_store.upsert_connection(
        user_id, provider, data.config, status=data.status
    )


@router.get("/{connection_id}/sync-logs", response_model=list[SyncLogEntry])
async def list_sync_logs(connection_id: str, limit: int = 50):
    """List sync attempts for a connection, newest first."""
    connection = await connection_store.get_connection(connection_id)
    if not connection:
        raise HTTPException(status_code=404, detail="Connection not found")

    return await workflow_store.list_sync_logs(connection_id, limit=limit)
