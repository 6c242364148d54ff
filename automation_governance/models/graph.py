"""Pydantic models for the canonical, provider-agnostic workflow graph.

Every provider adapter produces these values and every consumer (sync engine,
enrichment, detail views) reads them. Graphs are frozen: a fresh graph is built
on every normalization pass and never mutated afterwards.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NodeKind(str, Enum):
    """Role a node plays in a workflow graph."""

    TRIGGER = "trigger"
    ACTION = "action"
    ROUTER = "router"
    OTHER = "other"  # Valid in stored graphs, never emitted by the classifier


TRIGGER_TYPE_MARKERS: tuple[str, ...] = ("trigger", "webhook")
ROUTER_TYPE_MARKERS: tuple[str, ...] = ("if", "switch", "router", "filter")


class WorkflowGraphNode(BaseModel):
    """A node in the canonical graph."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    kind: NodeKind
    type: str  # Provider-specific tag, e.g. "n8n-nodes-base.webhook"


class WorkflowGraphEdge(BaseModel):
    """A directed connection between two nodes of the same graph."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")


class WorkflowGraph(BaseModel):
    """Normalized node/edge structure of a workflow."""

    model_config = ConfigDict(frozen=True)

    nodes: tuple[WorkflowGraphNode, ...] = ()
    edges: tuple[WorkflowGraphEdge, ...] = ()

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def edge_pairs(self) -> set[tuple[str, str]]:
        return {(e.from_id, e.to_id) for e in self.edges}

    def to_json_dict(self) -> dict:
        """Dump with wire names ("from"/"to") for storage and API responses."""
        return self.model_dump(mode="json", by_alias=True)


def classify_node_kind(node_type: str) -> NodeKind:
    """Derive a node's kind from its provider type string.

    Priority: trigger markers, then router markers, then action.
    """
    type_lower = node_type.lower()
    if any(marker in type_lower for marker in TRIGGER_TYPE_MARKERS):
        return NodeKind.TRIGGER
    if any(marker in type_lower for marker in ROUTER_TYPE_MARKERS):
        return NodeKind.ROUTER
    return NodeKind.ACTION


def format_node_type(node_type: str) -> str:
    """Turn a provider node type into a human-readable label.

    Examples:
        "n8n-nodes-base.httpRequest" -> "Http Request"
        "n8n-nodes-base.HTTPRequest" -> "HTTP Request"
        "zapier.webhook" -> "Webhook"
    """
    raw = node_type.rsplit(".", 1)[-1]
    words = re.sub(r"([a-z])([A-Z])", r"\1 \2", raw)
    words = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", words)
    return " ".join(w[:1].upper() + w[1:] for w in re.split(r"[\s_-]+", words) if w)
