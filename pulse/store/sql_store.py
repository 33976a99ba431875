"""PULSE — SQL Metric Store.

Reads metric definitions and counts message-log rows through a SQLModel
session. Keyword predicates compile to SQLAlchemy clauses, so every literal
reaches the database as a bound parameter.
"""

from typing import List

from sqlalchemy import String, and_, cast, false, func, or_, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, select

from pulse.analyzer.row_matcher import KeywordPredicate
from pulse.models.log_models import MessageLog
from pulse.models.metric_models import ClientMetric
from pulse.models.stats_models import DateRange, MetricScope
from pulse.core.logging import get_logger

logger = get_logger("store.sql")


class MetricStoreError(RuntimeError):
    """The definition store or row store is unavailable."""


def scope_filters(
    client_id: str,
    template_name: str | None = None,
    date_range: DateRange | None = None,
) -> List[ColumnElement]:
    """WHERE clauses restricting message logs to one scope."""
    clauses: List[ColumnElement] = [MessageLog.client_id == client_id]
    if template_name is not None:
        clauses.append(MessageLog.template_name == template_name)
    if date_range is not None:
        clauses.append(MessageLog.created_at >= date_range.start_at)
        clauses.append(MessageLog.created_at < date_range.end_before)
    return clauses


def compile_predicate(predicate: KeywordPredicate) -> ColumnElement:
    """Translate a ``KeywordPredicate`` into a parameterized clause."""
    if predicate.match_all:
        return true()

    column = getattr(MessageLog, predicate.column.value)
    as_text = cast(column, String)
    clauses: List[ColumnElement] = []

    if predicate.match_not_null:
        clauses.append(column.is_not(None))
    if predicate.match_null:
        clauses.append(column.is_(None))
    if predicate.match_empty:
        clauses.append(as_text == "")
    if predicate.literals:
        if predicate.is_numeric:
            clauses.append(as_text.in_(predicate.literals))
        else:
            clauses.append(func.lower(column).in_(predicate.folded_literals))

    if not clauses:
        return false()
    return or_(*clauses)


class SqlMetricStore:
    """``MetricStore`` backed by a database session."""

    def __init__(self, session: Session):
        self.session = session

    def load_active_metric_definitions(self, client_id: str) -> List[ClientMetric]:
        try:
            return list(
                self.session.exec(
                    select(ClientMetric)
                    .where(
                        ClientMetric.client_id == client_id,
                        ClientMetric.is_active == True,  # noqa: E712
                    )
                    .order_by(ClientMetric.sort_order, ClientMetric.created_at)
                ).all()
            )
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to load metric definitions: {e}", extra={"client_id": client_id}
            )
            raise MetricStoreError("metric definitions unavailable") from e

    def _count(self, scope: MetricScope, *conditions: ColumnElement) -> int:
        statement = (
            select(func.count())
            .select_from(MessageLog)
            .where(
                and_(
                    *scope_filters(scope.client_id, scope.template_name, scope.date_range),
                    *conditions,
                )
            )
        )
        try:
            return int(self.session.exec(statement).one())
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to count message logs: {e}",
                extra={"client_id": scope.client_id, "template_name": scope.template_name},
            )
            raise MetricStoreError("message logs unavailable") from e

    def count_rows(self, scope: MetricScope, predicate: KeywordPredicate) -> int:
        return self._count(scope, compile_predicate(predicate))

    def count_total_rows(self, scope: MetricScope) -> int:
        return self._count(scope)
