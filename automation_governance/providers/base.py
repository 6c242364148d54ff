"""Base provider adapter interface.

Every automation provider (n8n, Make, ...) is integrated through an adapter that:
1. Fetches raw workflow payloads from the provider's API
2. Normalizes each payload into the canonical Workflow + WorkflowGraph model
3. Syncs the normalized workflows into storage via the sync engine

Adapters are stateless; the registry keeps one instance per provider.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, ClassVar

import httpx

from automation_governance.models import (
    AutomationProvider,
    FetchWorkflowsResult,
    ProviderConnection,
    SyncWorkflowsResult,
    Workflow,
    WorkflowGraph,
    WorkflowGraphEdge,
    WorkflowGraphNode,
    classify_node_kind,
)
from automation_governance.providers import transport

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str | None = None, retriable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retriable = retriable


class ProviderConfigError(ProviderError):
    """Connection config is missing what the adapter needs to reach the provider."""

    pass


class ProviderFetchError(ProviderError):
    """The provider could not be reached or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class UnknownProviderError(ProviderError):
    """No adapter is registered for the requested provider."""

    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _timestamp(value: Any, fallback: str) -> str:
    """Stringify a payload timestamp; empty values fall back to `fallback`."""
    if value is None or value == "":
        return fallback
    return str(value)


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Subclasses declare the provider-specific field names and API location
    and implement `read_active`. Fetching, normalization and graph
    construction from a node list plus an n8n-style connection map are shared.

    Example implementation:
        @ProviderRegistry.register
        class ZapierAdapter(ProviderAdapter):
            provider = AutomationProvider.ZAPIER
            display_name = "Zapier"
            nodes_field = "steps"
    """

    provider: ClassVar[AutomationProvider]
    display_name: ClassVar[str]

    # Provider-specific payload field names
    nodes_field: ClassVar[str] = "nodes"
    connections_field: ClassVar[str] = "connections"
    node_id_prefix: ClassVar[str] = "node"
    node_name_prefix: ClassVar[str] = "Node"

    # API location, relative to the connection's baseUrl
    default_api_path: ClassVar[str] = ""
    workflows_path: ClassVar[str] = "/workflows"
    payload_key: ClassVar[str] = "data"

    # =========================================================================
    # Abstract Methods (must implement)
    # =========================================================================

    @abstractmethod
    def read_active(self, raw: dict[str, Any]) -> bool:
        """Read the active flag from a raw payload."""
        pass

    # =========================================================================
    # Fetch
    # =========================================================================

    async def fetch_workflows(self, connection: ProviderConnection) -> FetchWorkflowsResult:
        """Fetch raw workflows from the provider's API.

        Never raises for transport problems; failures come back as
        `FetchWorkflowsResult(success=False, error=...)`.
        """
        try:
            workflows = await self._fetch_raw(connection)
        except ProviderError as e:
            logger.warning(f"{self.display_name} fetch failed for {connection.id}: {e}")
            return FetchWorkflowsResult(success=False, workflows=[], error=str(e))

        return FetchWorkflowsResult(success=True, workflows=workflows)

    async def _fetch_raw(self, connection: ProviderConnection) -> list[Any]:
        """Call the provider API and return the list of raw workflow payloads."""
        base_url = connection.config.get("baseUrl")
        if not base_url:
            raise ProviderConfigError(
                f"Invalid {self.display_name} connection configuration",
                provider=self.provider.value,
            )
        api_path = connection.config.get("apiPath") or self.default_api_path

        try:
            res = await transport.fetch_provider_api(base_url, api_path, self.workflows_path)
        except httpx.HTTPError as e:
            raise ProviderFetchError(
                str(e) or f"Unknown error calling {self.display_name} API",
                provider=self.provider.value,
                retriable=True,
            ) from e

        if not res.is_success:
            raise ProviderFetchError(
                f"{self.display_name} API responded with status {res.status_code}",
                status_code=res.status_code,
                provider=self.provider.value,
            )

        try:
            payload = res.json()
        except ValueError as e:
            raise ProviderFetchError(
                f"{self.display_name} API did not return JSON",
                status_code=res.status_code,
                provider=self.provider.value,
            ) from e

        workflows = payload.get(self.payload_key) if isinstance(payload, dict) else None
        if workflows is None:
            return []
        if not isinstance(workflows, list):
            raise ProviderFetchError(
                f"{self.display_name} API returned malformed '{self.payload_key}' payload",
                status_code=res.status_code,
                provider=self.provider.value,
            )
        return workflows

    # =========================================================================
    # Normalize
    # =========================================================================

    def normalize_workflow(self, raw: Any, connection_id: str) -> Workflow | None:
        """Normalize a raw provider workflow into the canonical model.

        Pure function: no I/O, no mutation of `raw`. Returns None when the
        payload lacks an id or a name.
        """
        if not isinstance(raw, dict) or not raw.get("id") or not raw.get("name"):
            return None

        graph = self.build_graph(raw.get(self.nodes_field), raw.get(self.connections_field))
        now = _now_iso()

        return Workflow(
            id=str(raw["id"]),
            name=str(raw["name"]),
            active=self.read_active(raw),
            provider=self.provider,
            connection_id=connection_id,
            graph=graph,
            created_at=_timestamp(raw.get("createdAt"), now),
            updated_at=_timestamp(raw.get("updatedAt"), now),
        )

    def build_graph(self, raw_nodes: Any, connections: Any) -> WorkflowGraph:
        """Build the canonical graph from a node list and a connection map.

        Connection map shape: {sourceName: {"main": [[{"node": targetName, ...}]]}}.
        References to names absent from the node list are dropped.
        """
        nodes: list[WorkflowGraphNode] = []
        name_to_id: dict[str, str] = {}

        for index, raw_node in enumerate(raw_nodes or []):
            if not isinstance(raw_node, dict):
                continue
            node_id = raw_node.get("id")
            node_id = str(node_id) if node_id is not None else f"{self.node_id_prefix}_{index}"
            node_name = raw_node.get("name")
            node_type = raw_node.get("type")
            if not isinstance(node_type, str) or not node_type:
                node_type = "unknown"

            nodes.append(
                WorkflowGraphNode(
                    id=node_id,
                    label=str(node_name) if node_name is not None else f"{self.node_name_prefix} {index}",
                    kind=classify_node_kind(node_type),
                    type=node_type,
                )
            )
            if node_name is not None:
                name_to_id[str(node_name)] = node_id

        edges: list[WorkflowGraphEdge] = []
        if isinstance(connections, dict):
            for source_name, conn in connections.items():
                source_id = name_to_id.get(source_name)
                if source_id is None or not isinstance(conn, dict):
                    continue
                for slot in conn.get("main") or []:
                    for ref in slot or []:
                        if not isinstance(ref, dict):
                            continue
                        target_id = name_to_id.get(str(ref.get("node")))
                        if target_id is not None:
                            edges.append(WorkflowGraphEdge(from_id=source_id, to_id=target_id))

        return WorkflowGraph(nodes=tuple(nodes), edges=tuple(edges))

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync_workflows(self, connection: ProviderConnection) -> SyncWorkflowsResult:
        """Fetch, normalize and persist this connection's workflows."""
        from automation_governance.services.sync_engine import SyncEngine

        return await SyncEngine().sync_connection(self, connection)


class ProviderRegistry:
    """Registry of provider adapters.

    Holds one adapter instance per provider, in registration order.
    """

    _adapters: dict[AutomationProvider, ProviderAdapter] = {}

    @classmethod
    def register(cls, adapter_class: type[ProviderAdapter]) -> type[ProviderAdapter]:
        """Register an adapter class.

        Can be used as a decorator:
            @ProviderRegistry.register
            class N8nAdapter(ProviderAdapter):
                provider = AutomationProvider.N8N
        """
        cls._adapters[adapter_class.provider] = adapter_class()
        return adapter_class

    @classmethod
    def get(cls, provider: AutomationProvider | str) -> ProviderAdapter:
        """Get the adapter for a provider.

        Raises:
            UnknownProviderError: If no adapter is registered for it.
        """
        name = provider.value if isinstance(provider, AutomationProvider) else str(provider)
        try:
            adapter = cls._adapters.get(AutomationProvider(name))
        except ValueError:
            adapter = None
        if adapter is None:
            raise UnknownProviderError(
                f"No adapter registered for provider: {name}", provider=name
            )
        return adapter

    @classmethod
    def list_providers(cls) -> list[AutomationProvider]:
        """List registered providers."""
        return list(cls._adapters.keys())
