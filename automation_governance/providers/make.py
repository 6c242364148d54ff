"""Make (make.com) provider adapter.

Make calls workflows "scenarios", nodes "modules", and exposes the active flag
as `enabled`. Scenarios are listed from `GET {baseUrl}/api/v2/scenarios`.
"""

from typing import Any, ClassVar

from automation_governance.models import AutomationProvider
from automation_governance.providers.base import ProviderAdapter, ProviderRegistry


@ProviderRegistry.register
class MakeAdapter(ProviderAdapter):
    """Adapter for Make scenarios."""

    provider: ClassVar[AutomationProvider] = AutomationProvider.MAKE
    display_name: ClassVar[str] = "Make"

    nodes_field: ClassVar[str] = "modules"
    node_id_prefix: ClassVar[str] = "module"
    node_name_prefix: ClassVar[str] = "Module"

    default_api_path: ClassVar[str] = "/api/v2"
    workflows_path: ClassVar[str] = "/scenarios"
    payload_key: ClassVar[str] = "scenarios"

    def read_active(self, raw: dict[str, Any]) -> bool:
        """`active` wins over its `enabled` alias when both are present."""
        active = raw.get("active")
        if active is None:
            active = raw.get("enabled")
        return bool(active or False)
