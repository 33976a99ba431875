"""PULSE — Scope & Stats Output Models."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from pydantic import BaseModel, model_validator


# ─────────────────────────────────────────────
# SCOPE — What a computation counts over
# ─────────────────────────────────────────────


class DateRange(BaseModel):
    """Inclusive range of calendar days."""

    start: date
    end: date

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError(f"date range ends before it starts: {self.start} > {self.end}")
        return self

    @property
    def start_at(self) -> datetime:
        """First instant inside the range (UTC)."""
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @property
    def end_before(self) -> datetime:
        """First instant after the range (UTC, exclusive bound)."""
        return datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=timezone.utc)

    def contains(self, moment: datetime) -> bool:
        """Naive moments are taken as UTC; aware ones are converted to UTC."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        else:
            moment = moment.astimezone(timezone.utc)
        return self.start_at <= moment < self.end_before


class MetricScope(BaseModel):
    """Tenant + optional template + optional date range."""

    client_id: str
    template_name: Optional[str] = None
    date_range: Optional[DateRange] = None

    model_config = {"frozen": True}


# ─────────────────────────────────────────────
# METRIC STATS — Dashboard card output
# ─────────────────────────────────────────────


class MetricStat(BaseModel):
    """One computed metric ready for display."""

    metric_id: Optional[int] = None
    name: str
    icon: str = ""
    color: str = ""
    count: Union[int, float] = 0
    percentage: Optional[int] = None  # Classification metrics only
    is_calculated: bool = False
    prefix: Optional[str] = None
    unit: Optional[str] = None


class StatusBucket(BaseModel):
    """Rows falling into one canonical status category."""

    key: str
    label: str
    color: str = ""
    count: int = 0
    percentage: int = 0


# ─────────────────────────────────────────────
# ANALYTICS SUMMARY — Fixed dashboard aggregates
# ─────────────────────────────────────────────


class AnalyticsSummary(BaseModel):
    """Headline message counts for a client."""

    total_contacts: int = 0
    sent: int = 0
    delivered: int = 0
    read: int = 0
    replied: int = 0
    failed: int = 0
    pending: int = 0
    delivery_rate: float = 0.0
    read_rate: float = 0.0


class TemplateStats(BaseModel):
    """Per-template message counts."""

    template_name: str
    total: int = 0
    delivered: int = 0
    read: int = 0
    failed: int = 0


class DailyStats(BaseModel):
    """Per-day message counts."""

    date: str  # YYYY-MM-DD
    total: int = 0
    delivered: int = 0
    read: int = 0


class StatusDistribution(BaseModel):
    """Row count per raw message status."""

    status: str
    count: int = 0
