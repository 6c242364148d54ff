"""Services for automation governance."""

from automation_governance.services.enrichment import (
    detect_duplicates,
    enrich_workflows,
    get_enrichment_for_workflow,
    workflow_to_enrichment_input,
)
from automation_governance.services.graph_summary import (
    GraphSummary,
    get_action_pills,
    get_signals,
    get_trigger_node,
    get_trigger_summary,
    summarize_graph,
)
from automation_governance.services.sync_engine import (
    ReconcileAction,
    SyncEngine,
    build_actions,
)

__all__ = [
    "GraphSummary",
    "ReconcileAction",
    "SyncEngine",
    "build_actions",
    "detect_duplicates",
    "enrich_workflows",
    "get_action_pills",
    "get_enrichment_for_workflow",
    "get_signals",
    "get_trigger_node",
    "get_trigger_summary",
    "summarize_graph",
    "workflow_to_enrichment_input",
]
