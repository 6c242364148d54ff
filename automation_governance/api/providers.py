"""API routes for provider adapters and syncing."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from automation_governance.api.dependencies import get_user_id
from automation_governance.db import connection_store
from automation_governance.models import SyncWorkflowsResult
from automation_governance.providers import (
    UnknownProviderError,
    get_provider_adapter,
    get_registered_providers,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["providers"])


class ProviderInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    display_name: str = Field(alias="displayName")


@router.get("", response_model=list[ProviderInfo])
async def list_providers():
    """List providers that have a registered adapter."""
    return [
        ProviderInfo(provider=p.value, display_name=get_provider_adapter(p).display_name)
        for p in get_registered_providers()
    ]


@router.post("/{provider}/sync", response_model=SyncWorkflowsResult)
async def sync_provider(provider: str, user_id: Annotated[str, Depends(get_user_id)]):
    """Fetch and persist the current user's workflows from a provider."""
    try:
        adapter = get_provider_adapter(provider)
    except UnknownProviderError as e:
        raise HTTPException(status_code=404, detail=str(e))

    connection = await connection_store.get_provider_connection(adapter.provider, user_id)
    if not connection:
        raise HTTPException(
            status_code=400,
            detail=f"{adapter.display_name} is not connected",
        )

    result = await adapter.sync_workflows(connection)
    if not result.success:
        logger.warning(f"{adapter.display_name} sync failed for {connection.id}: {result.error}")
        raise HTTPException(status_code=502, detail=result.error or "Sync failed")

    return result
