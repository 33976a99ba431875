"""PULSE — Metric Stats Engine.

Computes every active metric of a client for one scope, in two stages:

  1. classification metrics → row counts → value table
  2. calculated metrics    → formulas over a frozen snapshot of that table

Calculated metrics only ever see classification values. A bad definition
costs that one metric; a store failure fails the whole computation.
"""

import time
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from pulse.analyzer.definitions import (
    CalculatedMetric,
    ClassificationMetric,
    MetricConfigError,
    MetricKey,
    to_definition,
)
from pulse.analyzer.formula_engine import Number, evaluate_formula, round_half_up
from pulse.analyzer.row_matcher import KeywordPredicate, count_matching_rows
from pulse.models.metric_models import ClientMetric
from pulse.models.stats_models import DateRange, MetricScope, MetricStat
from pulse.core.logging import get_logger

logger = get_logger("analyzer.stats")


class MetricStore(Protocol):
    """Read-only persistence the engine depends on."""

    def load_active_metric_definitions(self, client_id: str) -> List[ClientMetric]: ...

    def count_rows(self, scope: MetricScope, predicate: KeywordPredicate) -> int: ...

    def count_total_rows(self, scope: MetricScope) -> int: ...


def percentage_of(count: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100 * count / total)


def load_definitions(
    records: Sequence[ClientMetric],
) -> Tuple[List[ClassificationMetric], List[CalculatedMetric]]:
    """Split records into typed definitions, skipping misconfigured ones."""
    classification: List[ClassificationMetric] = []
    calculated: List[CalculatedMetric] = []
    for record in records:
        if not record.is_active:
            continue
        try:
            definition = to_definition(record)
        except MetricConfigError as e:
            logger.warning(
                f"Skipping metric: {e}",
                extra={
                    "client_id": record.client_id,
                    "metric_id": e.metric_id,
                    "metric_name": e.name,
                    "reason": e.reason,
                },
            )
            continue
        if isinstance(definition, CalculatedMetric):
            calculated.append(definition)
        else:
            classification.append(definition)
    return classification, calculated


def compute_classification_stats(
    store: MetricStore,
    scope: MetricScope,
    definitions: Sequence[ClassificationMetric],
    total_rows: int,
) -> Tuple[List[MetricStat], Mapping[MetricKey, Number]]:
    """Stage 1: count each metric and collect its value under its key."""
    stats: List[MetricStat] = []
    values: Dict[MetricKey, Number] = {}

    for definition in definitions:
        count = count_matching_rows(store, scope, definition.column, definition.keywords)
        if definition.key in values:
            logger.debug(
                f"Metric key {definition.key!r} is defined twice; the later one wins",
                extra={"client_id": scope.client_id, "metric_id": definition.metric_id},
            )
        values[definition.key] = count
        stats.append(
            MetricStat(
                metric_id=definition.metric_id,
                name=definition.name,
                icon=definition.icon,
                color=definition.color,
                count=count,
                percentage=percentage_of(count, total_rows),
                is_calculated=False,
            )
        )

    return stats, MappingProxyType(values)


def compute_calculated_stats(
    definitions: Sequence[CalculatedMetric],
    values: Mapping[MetricKey, Number],
) -> List[MetricStat]:
    """Stage 2: evaluate each formula against the frozen stage-1 values."""
    return [
        MetricStat(
            metric_id=definition.metric_id,
            name=definition.name,
            icon=definition.icon,
            color=definition.color,
            count=evaluate_formula(definition.formula, values),
            is_calculated=True,
            prefix=definition.prefix,
            unit=definition.unit,
        )
        for definition in definitions
    ]


def compute_metric_stats(
    store: MetricStore,
    client_id: str,
    template_name: Optional[str] = None,
    date_range: Optional[DateRange] = None,
) -> List[MetricStat]:
    """Compute all active metrics of ``client_id`` within the given scope.

    Returns an empty list when the client has no active metrics. Store
    failures propagate; callers should show the metrics as unavailable
    rather than as zeros.
    """
    started = time.perf_counter()
    scope = MetricScope(client_id=client_id, template_name=template_name, date_range=date_range)

    records = store.load_active_metric_definitions(client_id)
    if not records:
        logger.info("No active metrics configured", extra={"client_id": client_id})
        return []

    classification, calculated = load_definitions(records)
    if not classification and not calculated:
        return []

    total_rows = store.count_total_rows(scope)
    classification_stats, values = compute_classification_stats(
        store, scope, classification, total_rows
    )
    calculated_stats = compute_calculated_stats(calculated, values)

    logger.info(
        f"Computed {len(classification_stats)} classification and "
        f"{len(calculated_stats)} calculated metrics over {total_rows} rows",
        extra={
            "client_id": client_id,
            "template_name": template_name,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return classification_stats + calculated_stats
