"""PULSE — Date Range Resolution.

Dashboards pass either a preset (``last_7d``) or explicit ``YYYY-MM-DD``
bounds. No usable input means no date filter at all.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from pulse.models.stats_models import DateRange

PRESETS = ("today", "yesterday", "last_7d", "last_14d", "last_30d", "this_month")


def _validate_date(d: Optional[str]) -> Optional[date]:
    """Return the parsed date if valid YYYY-MM-DD, else None."""
    if not d:
        return None
    try:
        return datetime.strptime(d, "%Y-%m-%d").date()
    except ValueError:
        return None


def resolve_date_range(
    date_range: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> Optional[DateRange]:
    """Resolve date parameters into a ``DateRange``.

    Explicit bounds win over a preset and need both ends. Bounds given in the
    wrong order are swapped.
    """
    today = today or datetime.now(timezone.utc).date()

    # Sanitize inputs
    start = _validate_date(start_date)
    end = _validate_date(end_date)

    if start and end:
        if end < start:
            start, end = end, start
        return DateRange(start=start, end=end)

    if date_range:
        mapping = {
            "today": (today, today),
            "yesterday": (today - timedelta(days=1), today - timedelta(days=1)),
            "last_7d": (today - timedelta(days=7), today - timedelta(days=1)),
            "last_14d": (today - timedelta(days=14), today - timedelta(days=1)),
            "last_30d": (today - timedelta(days=30), today - timedelta(days=1)),
            "this_month": (today.replace(day=1), today),
        }
        if date_range in mapping:
            s, e = mapping[date_range]
            return DateRange(start=s, end=e)

    return None
