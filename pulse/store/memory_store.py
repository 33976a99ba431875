"""PULSE — In-Memory Metric Store.

Serves metric stats over rows that are already loaded, e.g. a template detail
view that fetched its messages anyway. Predicates run in Python with the same
semantics the SQL store compiles to.
"""

from typing import Iterable, List

from pulse.analyzer.row_matcher import KeywordPredicate
from pulse.models.log_models import MessageLog
from pulse.models.metric_models import ClientMetric
from pulse.models.stats_models import MetricScope


class InMemoryMetricStore:
    """``MetricStore`` over plain lists of rows and metric definitions."""

    def __init__(
        self,
        rows: Iterable[MessageLog] = (),
        metrics: Iterable[ClientMetric] = (),
    ):
        self.rows: List[MessageLog] = list(rows)
        self.metrics: List[ClientMetric] = list(metrics)

    def load_active_metric_definitions(self, client_id: str) -> List[ClientMetric]:
        active = [m for m in self.metrics if m.client_id == client_id and m.is_active]
        return sorted(active, key=lambda m: (m.sort_order, m.created_at))

    def _in_scope(self, scope: MetricScope) -> List[MessageLog]:
        return [
            row
            for row in self.rows
            if row.client_id == scope.client_id
            and (scope.template_name is None or row.template_name == scope.template_name)
            and (scope.date_range is None or scope.date_range.contains(row.created_at))
        ]

    def count_rows(self, scope: MetricScope, predicate: KeywordPredicate) -> int:
        column = predicate.column.value
        return sum(1 for row in self._in_scope(scope) if predicate.matches(getattr(row, column)))

    def count_total_rows(self, scope: MetricScope) -> int:
        return len(self._in_scope(scope))
