"""Pydantic models for canonical workflows, persisted records and sync results."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from automation_governance.models.graph import WorkflowGraph


class AutomationProvider(str, Enum):
    """Automation tools whose workflows can be ingested."""

    N8N = "n8n"
    MAKE = "make"
    ZAPIER = "zapier"
    AIRTABLE = "airtable"


class ToolType(str, Enum):
    """Tool enum stored on a connection row (legacy naming)."""

    N8N = "N8N"
    MAKE = "MAKE"
    ZAPIER = "ZAPIER"
    AIRTABLE = "AIRTABLE"


def provider_to_tool(provider: AutomationProvider) -> ToolType:
    """Map a provider to the tool enum stored on connections."""
    return ToolType(provider.value.upper())


def tool_to_provider(tool: ToolType | str | None) -> AutomationProvider:
    """Map a connection tool to a provider.

    Unknown or missing tools fall back to n8n, the only provider that existed
    before the provider column was introduced.
    """
    try:
        return AutomationProvider(ToolType(tool).value.lower())
    except ValueError:
        return AutomationProvider.N8N


class ConnectionStatus(str, Enum):
    """Status of a provider connection."""

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    ERROR = "ERROR"


class ProviderConnection(BaseModel):
    """A user's connection to one automation provider."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    provider: AutomationProvider
    user_id: str = Field(alias="userId")
    status: ConnectionStatus = ConnectionStatus.ACTIVE
    config: dict[str, Any] = Field(default_factory=dict)
    last_synced_at: datetime | None = Field(default=None, alias="lastSyncedAt")


class Workflow(BaseModel):
    """Canonical, provider-agnostic workflow."""

    model_config = ConfigDict(populate_by_name=True)

    id: str  # Provider-scoped external identifier
    name: str
    active: bool
    provider: AutomationProvider
    connection_id: str = Field(alias="connectionId")
    graph: WorkflowGraph | None = None
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


# ==================== Persisted records ====================


@dataclass(frozen=True)
class LegacyOnly:
    """Record written before the provider/external_id columns existed."""

    connection_id: str
    tool_workflow_id: str


@dataclass(frozen=True)
class Migrated:
    """Record carrying both key generations."""

    connection_id: str
    tool_workflow_id: str
    provider: AutomationProvider
    external_id: str


@dataclass(frozen=True)
class CurrentOnly:
    """Record keyed only by (provider, external_id)."""

    provider: AutomationProvider
    external_id: str


RecordIdentity = LegacyOnly | Migrated | CurrentOnly


class RecordIdentityError(ValueError):
    """A stored workflow row carries neither key generation."""


class WorkflowRecord(BaseModel):
    """A workflow row as persisted by the workflow store."""

    id: str
    user_id: str
    connection_id: str
    tool_workflow_id: str | None = None
    provider: AutomationProvider | None = None
    external_id: str | None = None
    name: str
    status: str
    trigger_type: str | None = None
    actions: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    last_synced_at: datetime | None = None

    # Joined from the owning connection (not stored on the row)
    connection_tool: ToolType | None = None

    @property
    def identity(self) -> RecordIdentity:
        """Classify which key generations this record carries."""
        has_legacy = self.tool_workflow_id is not None
        has_current = self.provider is not None and self.external_id is not None

        if has_legacy and has_current:
            return Migrated(
                connection_id=self.connection_id,
                tool_workflow_id=self.tool_workflow_id,
                provider=self.provider,
                external_id=self.external_id,
            )
        if has_current:
            return CurrentOnly(provider=self.provider, external_id=self.external_id)
        if has_legacy:
            return LegacyOnly(
                connection_id=self.connection_id,
                tool_workflow_id=self.tool_workflow_id,
            )
        raise RecordIdentityError(f"Workflow record {self.id} has no identity key")


class WorkflowRecordWrite(BaseModel):
    """Fields written to a workflow row on every sync."""

    name: str
    status: str
    trigger_type: str | None = None
    actions: dict[str, Any]
    connection_id: str
    last_synced_at: datetime


# ==================== Sync results ====================


class SyncStatus(str, Enum):
    """Outcome of one sync invocation."""

    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    ERROR = "ERROR"


class SyncLogEntryCreate(BaseModel):
    """Audit entry appended once per sync invocation."""

    connection_id: str
    user_id: str
    status: SyncStatus
    workflows_count: int = 0
    error_message: str | None = None


class SyncLogEntry(SyncLogEntryCreate):
    """A persisted audit entry."""

    id: str
    synced_at: datetime


class FetchWorkflowsResult(BaseModel):
    """Raw payloads returned by a provider, or a structured failure."""

    success: bool
    workflows: list[Any] = Field(default_factory=list)
    error: str | None = None


class SyncWorkflowsResult(BaseModel):
    """Aggregate result of syncing one connection."""

    success: bool
    synced: int = 0
    error: str | None = None
