"""API routes for synced workflows."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from automation_governance.api.dependencies import get_user_id
from automation_governance.db import to_workflow, workflow_store
from automation_governance.models import (
    AutomationProvider,
    DuplicateReport,
    ToolType,
    Workflow,
    WorkflowWithEnrichment,
)
from automation_governance.services import (
    GraphSummary,
    detect_duplicates,
    enrich_workflows,
    summarize_graph,
    workflow_to_enrichment_input,
)

router = APIRouter()


class WorkflowsResponse(BaseModel):
    """List of canonical workflows."""

    data: list[Workflow]
    count: int


class WorkflowDetail(BaseModel):
    """A workflow with its graph summary."""

    workflow: Workflow
    summary: GraphSummary


class WorkflowInsights(BaseModel):
    """Enriched inventory plus duplicate pairs."""

    workflows: list[WorkflowWithEnrichment]
    duplicates: DuplicateReport


async def _load_workflows(
    user_id: str,
    provider: AutomationProvider | None = None,
    tool: ToolType | None = None,
    connection_id: str | None = None,
) -> list[Workflow]:
    records = await workflow_store.list_workflows(
        user_id=user_id, provider=provider, tool=tool, connection_id=connection_id
    )
    return [to_workflow(record) for record in records]


@router.get("/workflows", response_model=WorkflowsResponse)
async def list_workflows(
    user_id: Annotated[str, Depends(get_user_id)],
    provider: AutomationProvider | None = None,
    tool: Annotated[ToolType | None, Query(description="Legacy filter on the connection tool")] = None,
    connection_id: str | None = None,
):
    """List synced workflows, newest first."""
    workflows = await _load_workflows(user_id, provider, tool, connection_id)
    return WorkflowsResponse(data=workflows, count=len(workflows))


@router.get("/workflows/insights", response_model=WorkflowInsights)
async def get_workflow_insights(
    user_id: Annotated[str, Depends(get_user_id)],
    provider: AutomationProvider | None = None,
):
    """Classify every synced workflow and report likely duplicates."""
    workflows = await _load_workflows(user_id, provider)
    enriched = enrich_workflows([workflow_to_enrichment_input(w) for w in workflows])
    return WorkflowInsights(workflows=enriched, duplicates=detect_duplicates(enriched))


@router.get("/workflows/{provider}/{external_id}", response_model=WorkflowDetail)
async def get_workflow(provider: AutomationProvider, external_id: str):
    """Get one workflow by its provider-scoped id."""
    record = await workflow_store.find_for_display(provider, external_id)
    if not record:
        raise HTTPException(status_code=404, detail="Workflow not found")

    workflow = to_workflow(record)
    return WorkflowDetail(workflow=workflow, summary=summarize_graph(workflow.graph))
