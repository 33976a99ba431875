"""PULSE — Status Mapping Engine.

Clients send through providers that spell statuses and response codes
differently. Each client maps raw values onto canonical categories using the
same keyword syntax as classification metrics, e.g.
``{"PENDING": "null,$empty", "SUCCESS": "200,201,202"}``.
"""

from typing import Dict, List, Mapping, Optional

from pulse.analyzer.definitions import parse_keywords
from pulse.analyzer.row_matcher import RowCounter, count_matching_rows
from pulse.analyzer.stats_engine import percentage_of
from pulse.core.column_registry import LogColumn, SpecialKeyword
from pulse.models.stats_models import DateRange, MetricScope, StatusBucket
from pulse.core.logging import get_logger

logger = get_logger("analyzer.status")


class StatusCategory:
    """A canonical status bucket with its default mapping and color."""

    def __init__(self, key: str, label: str, default_mapping: str, color: str):
        self.key = key
        self.label = label
        self.default_mapping = default_mapping
        self.color = color

    def __repr__(self) -> str:
        return f"<StatusCategory {self.key}>"


# ─────────────────────────────────────────────
# DELIVERY STATUSES — message_status
# ─────────────────────────────────────────────

DELIVERY_STATUSES: List[StatusCategory] = [
    StatusCategory("SENT", "Sent", "sent,Sent,SENT", "#3B82F6"),
    StatusCategory("DELIVERED", "Delivered", "delivered,Delivered,DELIVERED", "#10B981"),
    StatusCategory("READ", "Read", "read,Read,READ", "#6366F1"),
    StatusCategory("REPLIED", "Action", "replied,Replied,REPLIED", "#8B5CF6"),
    StatusCategory("PENDING", "Pending", "null,$empty", "#F59E0B"),
    StatusCategory("FAILED", "Failed", "failed,Failed,FAILED", "#EF4444"),
]

# ─────────────────────────────────────────────
# STATUS CODE CATEGORIES — status_code
# ─────────────────────────────────────────────

STATUS_CODE_CATEGORIES: List[StatusCategory] = [
    StatusCategory("SUCCESS", "Success", "200,201,202", "#10B981"),
    StatusCategory("CLIENT_ERROR", "Client Error", "400,401,403,404", "#F59E0B"),
    StatusCategory("SERVER_ERROR", "Server Error", "500,502,503", "#EF4444"),
]


def _normalize_pending(mapping: str) -> str:
    """Make sure a PENDING mapping that covers null also covers empty strings."""
    values = [v.strip() for v in mapping.split(",")]
    has_null = SpecialKeyword.LEGACY_NULL.value in values
    has_empty = "" in values or SpecialKeyword.EMPTY.value in values

    if has_null and not has_empty:
        mapping = mapping.strip()
        if not mapping.endswith(","):
            mapping += ","
        return mapping + SpecialKeyword.EMPTY.value
    if has_empty and SpecialKeyword.EMPTY.value not in values:
        return ",".join(SpecialKeyword.EMPTY.value if v == "" else v for v in values)
    return mapping


def resolve_mappings(
    categories: List[StatusCategory],
    existing: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Client mappings with defaults filled in for missing or blank categories."""
    existing = existing or {}
    resolved: Dict[str, str] = {}
    for category in categories:
        mapping = existing.get(category.key) or category.default_mapping
        if category.key == "PENDING":
            mapping = _normalize_pending(mapping)
        resolved[category.key] = mapping
    return resolved


def _breakdown(
    store: RowCounter,
    scope: MetricScope,
    column: LogColumn,
    categories: List[StatusCategory],
    existing: Optional[Mapping[str, str]],
    colors: Optional[Mapping[str, str]],
) -> List[StatusBucket]:
    mappings = resolve_mappings(categories, existing)
    colors = colors or {}
    total = store.count_total_rows(scope)

    buckets = []
    for category in categories:
        count = count_matching_rows(store, scope, column, parse_keywords(mappings[category.key]))
        buckets.append(
            StatusBucket(
                key=category.key,
                label=category.label,
                color=colors.get(category.key) or category.color,
                count=count,
                percentage=percentage_of(count, total),
            )
        )
    logger.debug(
        f"Status breakdown on {column.value}: {[(b.key, b.count) for b in buckets]}",
        extra={"client_id": scope.client_id},
    )
    return buckets


def compute_status_breakdown(
    store: RowCounter,
    client_id: str,
    template_name: Optional[str] = None,
    date_range: Optional[DateRange] = None,
    mappings: Optional[Mapping[str, str]] = None,
    colors: Optional[Mapping[str, str]] = None,
) -> List[StatusBucket]:
    """Rows per canonical delivery status (matched on ``message_status``)."""
    scope = MetricScope(client_id=client_id, template_name=template_name, date_range=date_range)
    return _breakdown(store, scope, LogColumn.MESSAGE_STATUS, DELIVERY_STATUSES, mappings, colors)


def compute_status_code_breakdown(
    store: RowCounter,
    client_id: str,
    template_name: Optional[str] = None,
    date_range: Optional[DateRange] = None,
    mappings: Optional[Mapping[str, str]] = None,
    colors: Optional[Mapping[str, str]] = None,
) -> List[StatusBucket]:
    """Rows per status code category (matched on ``status_code``)."""
    scope = MetricScope(client_id=client_id, template_name=template_name, date_range=date_range)
    return _breakdown(store, scope, LogColumn.STATUS_CODE, STATUS_CODE_CATEGORIES, mappings, colors)
