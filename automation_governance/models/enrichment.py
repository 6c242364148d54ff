"""Pydantic models for workflow enrichment and duplicate detection."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class WorkflowDomain(str, Enum):
    """Business domain a workflow belongs to."""

    OPERATIONS = "Operations"
    SALES = "Sales"
    MARKETING_GROWTH = "Marketing/Growth"
    SUPPORT_CS = "Support/CS"
    FINANCE = "Finance"
    PRODUCT_ENGINEERING = "Product/Engineering"
    DATA_ANALYTICS = "Data/Analytics"
    HR = "HR"
    UNKNOWN = "Unknown"


class RiskFlag(str, Enum):
    """Risk signals raised for a workflow."""

    PUBLIC_WEBHOOK = "public_webhook"
    NO_TRIGGER = "no_trigger"
    INACTIVE = "inactive"
    HIGH_COMPLEXITY = "high_complexity"
    UNKNOWN = "unknown"


class HealthStatus(str, Enum):
    """Overall health of a workflow."""

    OK = "ok"
    WARNING = "warning"
    BROKEN = "broken"


class DuplicateReason(str, Enum):
    """Why two workflows were paired as duplicates."""

    EXACT_NAME = "exact_name"
    PROBABLE = "probable"


class EnrichmentInput(BaseModel):
    """Denormalized projection of a workflow used for classification."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    active: bool
    trigger_type: str | None = Field(default=None, alias="triggerType")
    nodes_count: int | None = Field(default=None, alias="nodesCount")
    has_public_webhook: bool | None = Field(default=None, alias="hasPublicWebhook")
    nodes: list[Any] | None = None
    last_execution_status: Literal["success", "error"] | None = Field(
        default=None, alias="lastExecutionStatus"
    )
    last_execution_date: str | None = Field(default=None, alias="lastExecutionDate")


class WorkflowEnrichment(BaseModel):
    """Derived classification for one workflow."""

    model_config = ConfigDict(populate_by_name=True)

    domain: WorkflowDomain
    output: str
    systems: list[str] = Field(default_factory=list)
    risk_flags: list[RiskFlag] = Field(default_factory=list, alias="riskFlags")
    health: HealthStatus
    confidence: float
    reason: str


class WorkflowWithEnrichment(EnrichmentInput):
    """An enrichment input paired with its computed enrichment."""

    enrichment: WorkflowEnrichment


class DuplicatePair(BaseModel):
    """Two workflows judged to be the same or near-identical."""

    model_config = ConfigDict(populate_by_name=True)

    id_a: str = Field(alias="idA")
    name_a: str = Field(alias="nameA")
    id_b: str = Field(alias="idB")
    name_b: str = Field(alias="nameB")
    reason: DuplicateReason


class DuplicateReport(BaseModel):
    """Duplicate pairs plus, per workflow id, the names it was paired with."""

    pairs: list[DuplicatePair] = Field(default_factory=list)
    similar_names: dict[str, list[str]] = Field(
        default_factory=dict, alias="similarNames"
    )

    model_config = ConfigDict(populate_by_name=True)
