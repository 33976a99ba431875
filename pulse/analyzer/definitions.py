"""PULSE — Metric Definitions.

Turns stored ``ClientMetric`` rows into typed, validated definitions. Name
normalization happens here once, so every later stage works with
``MetricKey`` values instead of raw display names.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, NewType, Optional, Tuple, Union

from pulse.core.column_registry import LogColumn
from pulse.models.metric_models import ClientMetric

MetricKey = NewType("MetricKey", str)

_WHITESPACE_RE = re.compile(r"\s+")


class MetricConfigError(ValueError):
    """A stored metric definition cannot be evaluated."""

    def __init__(self, metric_id: Optional[int], name: str, reason: str):
        super().__init__(f"Metric {name!r} (id={metric_id}): {reason}")
        self.metric_id = metric_id
        self.name = name
        self.reason = reason


def normalize_metric_name(name: str) -> MetricKey:
    """Lowercase and strip all whitespace: ``"Delivery Rate"`` → ``"deliveryrate"``."""
    return MetricKey(_WHITESPACE_RE.sub("", name).lower())


def parse_keywords(text: str) -> List[str]:
    """Split comma-separated admin input into trimmed, non-blank tokens."""
    return [token.strip() for token in text.split(",") if token.strip()]


@dataclass(frozen=True)
class ClassificationMetric:
    """Counts rows whose ``column`` matches any of ``keywords``."""

    metric_id: Optional[int]
    name: str
    key: MetricKey
    icon: str
    color: str
    column: LogColumn
    keywords: Tuple[str, ...]

    is_calculated = False


@dataclass(frozen=True)
class CalculatedMetric:
    """Evaluates ``formula`` over classification metric values."""

    metric_id: Optional[int]
    name: str
    key: MetricKey
    icon: str
    color: str
    formula: str
    prefix: Optional[str] = None
    unit: Optional[str] = None

    is_calculated = True


MetricDefinition = Union[ClassificationMetric, CalculatedMetric]


def _keyword_text(item) -> Optional[str]:
    """Stored keyword as text; JSON integers (status codes) are accepted."""
    if isinstance(item, str):
        return item
    if isinstance(item, int) and not isinstance(item, bool):
        return str(item)
    return None


def to_definition(record: ClientMetric) -> MetricDefinition:
    """Validate a stored row and build its typed definition.

    Raises:
        MetricConfigError: blank name, empty formula, unknown column,
            keywords that are not a list, or no keywords.
    """
    name = (record.name or "").strip()
    if not name:
        raise MetricConfigError(record.id, record.name or "", "name is blank")

    key = normalize_metric_name(name)
    icon = record.icon or ""
    color = record.color or ""

    if record.is_calculated:
        formula = (record.formula or "").strip()
        if not formula:
            raise MetricConfigError(record.id, name, "calculated metric has no formula")
        return CalculatedMetric(
            metric_id=record.id,
            name=name,
            key=key,
            icon=icon,
            color=color,
            formula=formula,
            prefix=record.prefix or None,
            unit=record.unit or None,
        )

    try:
        column = LogColumn(record.map_to_column)
    except ValueError:
        raise MetricConfigError(
            record.id, name, f"unknown column {record.map_to_column!r}"
        ) from None

    raw_keywords = record.keywords if record.keywords is not None else []
    if not isinstance(raw_keywords, (list, tuple)):
        raise MetricConfigError(
            record.id, name, f"keywords must be a list, got {type(raw_keywords).__name__}"
        )
    keywords = tuple(text for text in map(_keyword_text, raw_keywords) if text is not None)
    if not keywords:
        raise MetricConfigError(record.id, name, "classification metric has no keywords")

    return ClassificationMetric(
        metric_id=record.id,
        name=name,
        key=key,
        icon=icon,
        color=color,
        column=column,
        keywords=keywords,
    )


def formula_variables(definitions: Iterable[MetricDefinition]) -> List[MetricKey]:
    """Identifiers a formula may reference, in definition order, without duplicates."""
    seen: dict[MetricKey, None] = {}
    for definition in definitions:
        if not definition.is_calculated:
            seen.setdefault(definition.key, None)
    return list(seen)
