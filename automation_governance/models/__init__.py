"""Pydantic models for automation governance."""

from automation_governance.models.enrichment import (
    DuplicatePair,
    DuplicateReason,
    DuplicateReport,
    EnrichmentInput,
    HealthStatus,
    RiskFlag,
    WorkflowDomain,
    WorkflowEnrichment,
    WorkflowWithEnrichment,
)
from automation_governance.models.graph import (
    NodeKind,
    WorkflowGraph,
    WorkflowGraphEdge,
    WorkflowGraphNode,
    classify_node_kind,
    format_node_type,
)
from automation_governance.models.workflow import (
    AutomationProvider,
    ConnectionStatus,
    CurrentOnly,
    FetchWorkflowsResult,
    LegacyOnly,
    Migrated,
    ProviderConnection,
    RecordIdentity,
    RecordIdentityError,
    SyncLogEntry,
    SyncLogEntryCreate,
    SyncStatus,
    SyncWorkflowsResult,
    ToolType,
    Workflow,
    WorkflowRecord,
    WorkflowRecordWrite,
    provider_to_tool,
    tool_to_provider,
)

__all__ = [
    # Graph
    "NodeKind",
    "WorkflowGraph",
    "WorkflowGraphEdge",
    "WorkflowGraphNode",
    "classify_node_kind",
    "format_node_type",
    # Workflows and connections
    "AutomationProvider",
    "ConnectionStatus",
    "ProviderConnection",
    "ToolType",
    "Workflow",
    "provider_to_tool",
    "tool_to_provider",
    # Persisted records
    "CurrentOnly",
    "LegacyOnly",
    "Migrated",
    "RecordIdentity",
    "RecordIdentityError",
    "WorkflowRecord",
    "WorkflowRecordWrite",
    # Sync
    "FetchWorkflowsResult",
    "SyncLogEntry",
    "SyncLogEntryCreate",
    "SyncStatus",
    "SyncWorkflowsResult",
    # Enrichment
    "DuplicatePair",
    "DuplicateReason",
    "DuplicateReport",
    "EnrichmentInput",
    "HealthStatus",
    "RiskFlag",
    "WorkflowDomain",
    "WorkflowEnrichment",
    "WorkflowWithEnrichment",
]
