"""Workflow enrichment - deterministic keyword classification and duplicate detection.

Enrichment is derived purely from a workflow's name, node list and execution
metadata. Nothing here performs I/O; callers may pass `now` for
reproducible staleness checks.
"""

import math
import re
from datetime import datetime, timezone
from itertools import combinations
from typing import Any

from automation_governance.models import (
    DuplicatePair,
    DuplicateReason,
    DuplicateReport,
    EnrichmentInput,
    HealthStatus,
    NodeKind,
    RiskFlag,
    Workflow,
    WorkflowDomain,
    WorkflowEnrichment,
    WorkflowWithEnrichment,
)

# ==================== Keyword tables ====================

# Ordered: on equal keyword counts the earlier domain wins
DOMAIN_KEYWORDS: tuple[tuple[WorkflowDomain, tuple[str, ...]], ...] = (
    (
        WorkflowDomain.FINANCE,
        ("invoice", "payment", "stripe", "billing", "accounting", "revenue", "payout"),
    ),
    (
        WorkflowDomain.SALES,
        ("hubspot", "deal", "crm", "pipeline", "sales", "prospect"),
    ),
    (
        WorkflowDomain.MARKETING_GROWTH,
        (
            "campaign",
            "ads",
            "email",
            "marketing",
            "seo",
            "blog",
            "content",
            "nurture",
            "newsletter",
            "magnet",
            "lead",
        ),
    ),
    (
        WorkflowDomain.SUPPORT_CS,
        ("support", "zendesk", "ticket", "helpdesk", "intercom"),
    ),
    (
        WorkflowDomain.PRODUCT_ENGINEERING,
        (
            "deploy",
            "github",
            "ci",
            "build",
            "release",
            "linear",
            "jira",
            "engineering",
            "failure",
        ),
    ),
    (
        WorkflowDomain.OPERATIONS,
        (
            "sync",
            "report",
            "digest",
            "notification",
            "alert",
            "ops",
            "monitor",
            "automation",
            "weekly",
            "daily",
        ),
    ),
    (
        WorkflowDomain.DATA_ANALYTICS,
        ("analytics", "metric", "dashboard", "warehouse", "etl", "bigquery"),
    ),
    (
        WorkflowDomain.HR,
        ("onboarding", "employee", "hiring", "recruitment", "payroll"),
    ),
)

# (keyword, display name), in report order
SYSTEM_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("slack", "Slack"),
    ("notion", "Notion"),
    ("airtable", "Airtable"),
    ("stripe", "Stripe"),
    ("gmail", "Gmail"),
    ("hubspot", "HubSpot"),
    ("github", "GitHub"),
    ("google sheets", "Google Sheets"),
    ("linear", "Linear"),
    ("openai", "OpenAI"),
    ("wordpress", "WordPress"),
    ("salesforce", "Salesforce"),
    ("jira", "Jira"),
)

STALE_THRESHOLD_DAYS = 30
HIGH_COMPLEXITY_NODE_COUNT = 10

_MS_PER_DAY = 86_400_000
_WORD_SPLIT = re.compile(r"[\s→\-]+")


# ==================== Classification ====================


def detect_domain(name: str) -> WorkflowDomain:
    """Pick the domain with the strictly highest keyword count in a lower-cased name."""
    best = WorkflowDomain.UNKNOWN
    best_count = 0

    for domain, keywords in DOMAIN_KEYWORDS:
        count = sum(1 for kw in keywords if kw in name)
        if count > best_count:
            best_count = count
            best = domain
    return best


def detect_systems(name: str) -> list[str]:
    """List vendor display names mentioned in a lower-cased name, once each."""
    systems: list[str] = []
    for keyword, label in SYSTEM_KEYWORDS:
        if keyword in name and label not in systems:
            systems.append(label)
    return systems


def derive_output(name: str, systems: list[str], domain: WorkflowDomain) -> str:
    """Describe what the workflow produces."""
    if len(systems) >= 2:
        return f"Sync {systems[0]} data to {systems[1]}"

    if "report" in name or "digest" in name:
        if systems:
            return f"Send periodic report via {systems[0]}"
        return "Generate and distribute periodic report"
    if "alert" in name or "notify" in name:
        if systems:
            return f"Send alert notification to {systems[0]}"
        return "Send automated alert notification"
    if "sync" in name:
        if systems:
            return f"Sync data with {systems[0]}"
        return f"Sync {domain.value.lower()} data"
    if len(systems) == 1:
        return f"{domain.value} automation via {systems[0]}"

    if domain != WorkflowDomain.UNKNOWN:
        return f"Automated {domain.value.lower()} workflow"
    return "Unconfigured workflow"


def derive_risk_flags(
    raw: EnrichmentInput,
    name: str,
    domain: WorkflowDomain,
    systems: list[str],
) -> list[RiskFlag]:
    """Collect risk flags in a fixed order.

    `no_trigger` is only raised when the trigger type was supplied at all.
    """
    flags: list[RiskFlag] = []

    if not raw.active:
        flags.append(RiskFlag.INACTIVE)

    if raw.has_public_webhook or "webhook" in name:
        flags.append(RiskFlag.PUBLIC_WEBHOOK)

    if "trigger_type" in raw.model_fields_set and (
        not raw.trigger_type or raw.trigger_type == "none"
    ):
        flags.append(RiskFlag.NO_TRIGGER)

    node_count = len(raw.nodes) if raw.nodes is not None else (raw.nodes_count or 0)
    if node_count > HIGH_COMPLEXITY_NODE_COUNT:
        flags.append(RiskFlag.HIGH_COMPLEXITY)

    if domain == WorkflowDomain.UNKNOWN and not systems:
        flags.append(RiskFlag.UNKNOWN)

    return flags


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _days_since(date_value: str, now: datetime) -> float | None:
    """Days between `date_value` and `now`; None when the date does not parse."""
    try:
        last = datetime.fromisoformat(date_value)
    except ValueError:
        return None
    return (_as_utc(now) - _as_utc(last)).total_seconds() * 1000 / _MS_PER_DAY


def _is_stale(date_value: str, now: datetime) -> bool:
    days = _days_since(date_value, now)
    return days is not None and days > STALE_THRESHOLD_DAYS


def derive_health(
    raw: EnrichmentInput, risk_flags: list[RiskFlag], now: datetime
) -> HealthStatus:
    """Health from execution history first, then from risk flags."""
    if raw.last_execution_status == "error":
        return HealthStatus.BROKEN

    if raw.last_execution_date:
        if _is_stale(raw.last_execution_date, now):
            return HealthStatus.WARNING

    if not raw.active and not raw.last_execution_date:
        return HealthStatus.WARNING

    if any(flag != RiskFlag.INACTIVE for flag in risk_flags):
        return HealthStatus.WARNING

    return HealthStatus.OK


def derive_confidence(domain: WorkflowDomain, systems: list[str]) -> float:
    has_domain = domain != WorkflowDomain.UNKNOWN
    if has_domain and systems:
        return 0.85
    if has_domain or systems:
        return 0.65
    return 0.4


def derive_reason(
    raw: EnrichmentInput,
    domain: WorkflowDomain,
    systems: list[str],
    health: HealthStatus,
    confidence: float,
    now: datetime,
) -> str:
    """Explain the health verdict, or the classification when healthy."""
    if health == HealthStatus.BROKEN and raw.last_execution_status == "error":
        return "Last execution failed"

    if health == HealthStatus.WARNING:
        if raw.last_execution_date:
            days = _days_since(raw.last_execution_date, now)
            if days is not None and days > STALE_THRESHOLD_DAYS:
                return f"No execution in {math.floor(days + 0.5)} days"
        if not raw.active and not raw.last_execution_date:
            return "Workflow inactive, never executed"

    if confidence >= 0.85:
        return f"Detected {domain.value} workflow using {', '.join(systems)}"
    if confidence >= 0.65 and domain != WorkflowDomain.UNKNOWN:
        return f"Detected {domain.value} workflow (limited system info)"
    if confidence >= 0.65:
        return f"Detected systems: {', '.join(systems)}"
    return "Insufficient data for classification"


def get_enrichment_for_workflow(
    raw: EnrichmentInput, now: datetime | None = None
) -> WorkflowEnrichment:
    """Classify a single workflow.

    Args:
        raw: The workflow projection to classify
        now: Reference time for staleness checks (defaults to the current UTC time)

    Returns:
        WorkflowEnrichment with domain, output, systems, flags, health and reason
    """
    now = now or datetime.now(timezone.utc)
    name = raw.name.lower()

    domain = detect_domain(name)
    systems = detect_systems(name)
    output = derive_output(name, systems, domain)
    risk_flags = derive_risk_flags(raw, name, domain, systems)
    health = derive_health(raw, risk_flags, now)
    confidence = derive_confidence(domain, systems)
    reason = derive_reason(raw, domain, systems, health, confidence, now)

    return WorkflowEnrichment(
        domain=domain,
        output=output,
        systems=systems,
        risk_flags=risk_flags,
        health=health,
        confidence=confidence,
        reason=reason,
    )


def enrich_workflows(
    inputs: list[EnrichmentInput], now: datetime | None = None
) -> list[WorkflowWithEnrichment]:
    """Attach an enrichment to every input, preserving order."""
    now = now or datetime.now(timezone.utc)
    return [
        WorkflowWithEnrichment(
            **item.model_dump(exclude_unset=True),
            enrichment=get_enrichment_for_workflow(item, now),
        )
        for item in inputs
    ]


def workflow_to_enrichment_input(workflow: Workflow, **metadata: Any) -> EnrichmentInput:
    """Project a canonical workflow for enrichment.

    Execution metadata (`last_execution_status`, `last_execution_date`,
    `has_public_webhook`) may be supplied by the caller. A workflow without a
    trigger node reports trigger type "none".
    """
    nodes = list(workflow.graph.nodes) if workflow.graph else []
    trigger = next((n for n in nodes if n.kind == NodeKind.TRIGGER), None)

    fields: dict[str, Any] = {
        "id": workflow.id,
        "name": workflow.name,
        "active": workflow.active,
        "trigger_type": trigger.type if trigger else "none",
        "nodes_count": len(nodes),
        "nodes": [n.model_dump(mode="json") for n in nodes],
    }
    if "has_public_webhook" not in metadata:
        fields["has_public_webhook"] = bool(trigger and "webhook" in trigger.type.lower())
    fields.update(metadata)

    return EnrichmentInput(**fields)


# ==================== Duplicate detection ====================


def _first_words(name: str, count: int = 3) -> str:
    return " ".join([w for w in _WORD_SPLIT.split(name.lower()) if w][:count])


def detect_duplicates(workflows: list[WorkflowWithEnrichment]) -> DuplicateReport:
    """Find exact-name and probable duplicate pairs.

    - Same trimmed, case-insensitive name: exact_name
    - Same known domain, same output and same first three words: probable

    Compares every pair, so cost grows quadratically with the inventory.
    """
    pairs: list[DuplicatePair] = []
    seen: set[str] = set()

    for a, b in combinations(workflows, 2):
        pair_key = ":".join(sorted((a.id, b.id)))
        if pair_key in seen:
            continue

        if a.name.strip().lower() == b.name.strip().lower():
            seen.add(pair_key)
            pairs.append(
                DuplicatePair(
                    id_a=a.id,
                    name_a=a.name,
                    id_b=b.id,
                    name_b=b.name,
                    reason=DuplicateReason.EXACT_NAME,
                )
            )
            continue

        same_domain = (
            a.enrichment.domain == b.enrichment.domain
            and a.enrichment.domain != WorkflowDomain.UNKNOWN
        )
        same_output = a.enrichment.output == b.enrichment.output
        start = _first_words(a.name)
        same_start = bool(start) and start == _first_words(b.name)

        if same_domain and same_output and same_start:
            seen.add(pair_key)
            pairs.append(
                DuplicatePair(
                    id_a=a.id,
                    name_a=a.name,
                    id_b=b.id,
                    name_b=b.name,
                    reason=DuplicateReason.PROBABLE,
                )
            )

    similar_names: dict[str, list[str]] = {}
    for pair in pairs:
        similar_names.setdefault(pair.id_a, []).append(pair.name_b)
        similar_names.setdefault(pair.id_b, []).append(pair.name_a)

    return DuplicateReport(pairs=pairs, similar_names=similar_names)
