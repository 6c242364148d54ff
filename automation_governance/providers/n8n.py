"""n8n provider adapter.

Fetches workflows from an n8n instance's REST API (`GET {baseUrl}/rest/workflows`)
and normalizes its `nodes` + `connections` payload into the canonical graph.
"""

from typing import Any, ClassVar

from automation_governance.models import AutomationProvider
from automation_governance.providers.base import ProviderAdapter, ProviderRegistry


@ProviderRegistry.register
class N8nAdapter(ProviderAdapter):
    """Adapter for n8n workflows."""

    provider: ClassVar[AutomationProvider] = AutomationProvider.N8N
    display_name: ClassVar[str] = "n8n"

    nodes_field: ClassVar[str] = "nodes"
    node_id_prefix: ClassVar[str] = "node"
    node_name_prefix: ClassVar[str] = "Node"

    default_api_path: ClassVar[str] = "/rest"
    workflows_path: ClassVar[str] = "/workflows"
    payload_key: ClassVar[str] = "data"

    def read_active(self, raw: dict[str, Any]) -> bool:
        return bool(raw.get("active") or False)
