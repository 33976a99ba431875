"""PULSE — Analytics Summary Engine.

Fixed dashboard aggregates over a client's message logs: headline counts,
per-template and per-day breakdowns, raw status distribution.
"""

from collections import defaultdict
from datetime import timezone
from typing import Dict, List, Optional

from sqlalchemy import case, func
from sqlmodel import Session, select

from pulse.models.log_models import MessageLog
from pulse.models.stats_models import (
    AnalyticsSummary,
    DailyStats,
    DateRange,
    StatusDistribution,
    TemplateStats,
)
from pulse.store.sql_store import scope_filters
from pulse.core.logging import get_logger

logger = get_logger("analyzer.summary")

SENT_STATUSES = ("sent", "delivered", "read", "replied")


def _count_where(condition):
    return func.count(case((condition, 1)))


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def get_analytics_summary(
    session: Session,
    client_id: str,
    date_range: Optional[DateRange] = None,
) -> AnalyticsSummary:
    """Headline counts for the client, optionally within a date range."""
    status = func.lower(MessageLog.message_status)
    row = session.exec(
        select(
            func.count(),
            _count_where(status.in_(SENT_STATUSES)),
            _count_where(status == "delivered"),
            _count_where(status == "read"),
            _count_where(status == "replied"),
            _count_where(status == "failed"),
            _count_where(MessageLog.message_status.is_(None)),
        )
        .select_from(MessageLog)
        .where(*scope_filters(client_id, date_range=date_range))
    ).one()

    total, sent, delivered, read, replied, failed, pending = (int(v or 0) for v in row)
    return AnalyticsSummary(
        total_contacts=total,
        sent=sent,
        delivered=delivered,
        read=read,
        replied=replied,
        failed=failed,
        pending=pending,
        delivery_rate=_rate(delivered, sent),
        read_rate=_rate(read, sent),
    )


def get_template_stats(
    session: Session,
    client_id: str,
    date_range: Optional[DateRange] = None,
) -> List[TemplateStats]:
    """Per-template counts, busiest template first."""
    total = func.count().label("total")
    rows = session.exec(
        select(
            MessageLog.template_name,
            total,
            _count_where(MessageLog.message_status.in_(("delivered", "read"))),
            _count_where(MessageLog.message_status == "read"),
            _count_where(MessageLog.status_code != 200),
        )
        .where(*scope_filters(client_id, date_range=date_range))
        .group_by(MessageLog.template_name)
        .order_by(total.desc(), MessageLog.template_name)
    ).all()

    return [
        TemplateStats(
            template_name=template_name or "Unknown",
            total=int(count),
            delivered=int(delivered),
            read=int(read),
            failed=int(failed),
        )
        for template_name, count, delivered, read, failed in rows
    ]


def get_daily_stats(
    session: Session,
    client_id: str,
    date_range: Optional[DateRange] = None,
) -> List[DailyStats]:
    """Per-day counts in ascending date order."""
    rows = session.exec(
        select(MessageLog.created_at, MessageLog.message_status).where(
            *scope_filters(client_id, date_range=date_range)
        )
    ).all()

    # Bucket in Python so day boundaries don't depend on the SQL dialect
    buckets: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for created_at, message_status in rows:
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(timezone.utc)
        day = buckets[created_at.strftime("%Y-%m-%d")]
        day["total"] += 1
        if message_status in ("delivered", "read"):
            day["delivered"] += 1
        if message_status == "read":
            day["read"] += 1

    return [
        DailyStats(date=day, total=c["total"], delivered=c["delivered"], read=c["read"])
        for day, c in sorted(buckets.items())
    ]


def get_status_distribution(
    session: Session,
    client_id: str,
    date_range: Optional[DateRange] = None,
) -> List[StatusDistribution]:
    """Row count per raw message status; null statuses report as ``pending``."""
    count = func.count().label("row_count")
    rows = session.exec(
        select(MessageLog.message_status, count)
        .where(*scope_filters(client_id, date_range=date_range))
        .group_by(MessageLog.message_status)
        .order_by(count.desc(), MessageLog.message_status)
    ).all()
    return [
        StatusDistribution(status=status if status is not None else "pending", count=int(n))
        for status, n in rows
    ]


def get_template_names(session: Session, client_id: str) -> List[str]:
    """Distinct template names the client has sent, sorted."""
    names = session.exec(
        select(MessageLog.template_name)
        .where(MessageLog.client_id == client_id, MessageLog.template_name.is_not(None))
        .distinct()
        .order_by(MessageLog.template_name)
    ).all()
    logger.debug(f"{len(names)} templates found", extra={"client_id": client_id})
    return list(names)
