"""Read-only summaries of a workflow graph for detail views."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from automation_governance.models import (
    NodeKind,
    WorkflowGraph,
    WorkflowGraphNode,
    format_node_type,
)

# Short labels for common node types, keyed by the type without its namespace
PILL_MAP: dict[str, str] = {
    "httpRequest": "HTTP Request",
    "set": "Set Fields",
    "code": "Code",
    "if": "If",
    "switch": "Switch",
    "merge": "Merge",
    "splitInBatches": "Batch",
    "respondToWebhook": "Respond",
    "function": "Function",
    "functionItem": "Function Item",
    "noOp": "No-Op",
    "wait": "Wait",
    "executeWorkflow": "Sub-Workflow",
}

# Lower-case fragments of node types that call out to third-party services
EXTERNAL_PATTERNS: tuple[str, ...] = (
    "httprequest",
    "gmail",
    "hubspot",
    "slack",
    "notion",
    "airtable",
    "googlesheets",
    "googledrive",
    "sheets",
    "drive",
    "telegram",
    "discord",
    "twitter",
    "stripe",
    "mailchimp",
    "sendgrid",
    "twilio",
    "jira",
    "github",
    "gitlab",
    "salesforce",
    "postgres",
    "mysql",
    "mongodb",
    "redis",
    "elasticsearch",
    "aws",
    "s3",
    "openai",
    "apollo",
)


class TriggerSummary(BaseModel):
    """Short description of how a workflow starts."""

    label: str
    kind: Literal["webhook", "schedule", "manual", "other"]
    config: dict[str, str] = Field(default_factory=dict)


class ActionPills(BaseModel):
    """Leading action labels plus how many were left out."""

    pills: list[str] = Field(default_factory=list)
    remaining: int = 0


class Signals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_branching: bool = Field(alias="hasBranching")
    has_external_calls: bool = Field(alias="hasExternalCalls")


class GraphSummary(BaseModel):
    """Everything the detail view shows about a graph."""

    trigger: TriggerSummary
    actions: ActionPills
    signals: Signals


def get_trigger_node(graph: WorkflowGraph | None) -> WorkflowGraphNode | None:
    """First node of kind trigger."""
    if not graph:
        return None
    return next((n for n in graph.nodes if n.kind == NodeKind.TRIGGER), None)


def get_trigger_summary(graph: WorkflowGraph | None) -> TriggerSummary:
    trigger = get_trigger_node(graph)
    if not trigger:
        return TriggerSummary(label="Manual", kind="manual")

    node_type = trigger.type.lower()
    if "webhook" in node_type:
        return TriggerSummary(label=format_node_type(trigger.type), kind="webhook")
    if "schedule" in node_type or "cron" in node_type:
        return TriggerSummary(label=format_node_type(trigger.type), kind="schedule")
    if "manual" in node_type:
        return TriggerSummary(label="Manual", kind="manual")
    return TriggerSummary(label=format_node_type(trigger.type), kind="other")


def _pill_label(node_type: str) -> str:
    return PILL_MAP.get(node_type.rsplit(".", 1)[-1]) or format_node_type(node_type)


def _ordered_non_trigger_nodes(
    graph: WorkflowGraph, trigger: WorkflowGraphNode | None
) -> list[WorkflowGraphNode]:
    """Non-trigger nodes in edge-walk order from the trigger, then disconnected ones."""
    node_by_id = {n.id: n for n in graph.nodes}
    targets_by_source: dict[str, list[str]] = {}
    for edge in graph.edges:
        targets_by_source.setdefault(edge.from_id, []).append(edge.to_id)

    trigger_id = trigger.id if trigger else None
    visited: set[str] = set()
    ordered: list[WorkflowGraphNode] = []

    # Iterative depth-first walk, children visited in edge order
    stack = [trigger_id] if trigger_id else []
    while stack:
        node_id = stack.pop()
        if node_id in visited:
            continue
        visited.add(node_id)
        node = node_by_id.get(node_id)
        if node and node.id != trigger_id and node.kind != NodeKind.TRIGGER:
            ordered.append(node)
        stack.extend(reversed(targets_by_source.get(node_id, [])))

    for node in graph.nodes:
        if node.id not in visited and node.id != trigger_id and node.kind != NodeKind.TRIGGER:
            ordered.append(node)
    return ordered


def get_action_pills(graph: WorkflowGraph | None, max_pills: int = 4) -> ActionPills:
    """Up to `max_pills` action labels ordered by the trigger's edge walk."""
    if not graph:
        return ActionPills()

    labels = [
        _pill_label(n.type)
        for n in _ordered_non_trigger_nodes(graph, get_trigger_node(graph))
    ]
    return ActionPills(pills=labels[:max_pills], remaining=max(0, len(labels) - max_pills))


def get_signals(graph: WorkflowGraph | None) -> Signals:
    """Branching (a node with several outgoing edges) and external-call signals."""
    if not graph:
        return Signals(has_branching=False, has_external_calls=False)

    outgoing: dict[str, int] = {}
    for edge in graph.edges:
        outgoing[edge.from_id] = outgoing.get(edge.from_id, 0) + 1

    has_external_calls = any(
        pattern in n.type.lower() for n in graph.nodes for pattern in EXTERNAL_PATTERNS
    )
    return Signals(
        has_branching=any(count > 1 for count in outgoing.values()),
        has_external_calls=has_external_calls,
    )


def summarize_graph(graph: WorkflowGraph | None) -> GraphSummary:
    return GraphSummary(
        trigger=get_trigger_summary(graph),
        actions=get_action_pills(graph),
        signals=get_signals(graph),
    )
