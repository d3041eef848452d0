"""
temporal_analyzer.py — Peak-activity windows from report timestamps.

Counts reports per hour of day (24), weekday (7, Sunday first) and month
(12) in a single timezone, then takes the argmax of each. Ties go to the
lowest index.

An all-zero distribution has no peak at all (None). A plain first-index
argmax would report hour 0, Sunday and Jan for an empty snapshot, which
the dashboard cannot tell apart from real midnight activity; callers get
None and render "no peak" instead.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from civicwatch.models.analysis import TemporalDistributions, TemporalProfile

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def peak_index(counts: list[int]) -> Optional[int]:
    """Index of the first maximum, or None if every bucket is zero."""
    if not counts or max(counts) == 0:
        return None
    return counts.index(max(counts))


def _localise(ts: datetime, tz: ZoneInfo) -> datetime:
    # Naive timestamps are taken to be UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz)


def analyze_timestamps(timestamps: Iterable[datetime], tz_name: str = "UTC") -> TemporalProfile:
    tz = ZoneInfo(tz_name)
    hourly = [0] * 24
    weekly = [0] * 7
    monthly = [0] * 12

    for ts in timestamps:
        local = _localise(ts, tz)
        hourly[local.hour] += 1
        # datetime.weekday() is Monday=0; buckets are Sunday=0
        weekly[(local.weekday() + 1) % 7] += 1
        monthly[local.month - 1] += 1

    day = peak_index(weekly)
    month = peak_index(monthly)

    return TemporalProfile(
        peak_hour=peak_index(hourly),
        peak_weekday=DAY_NAMES[day] if day is not None else None,
        peak_weekday_index=day,
        peak_month=MONTH_NAMES[month] if month is not None else None,
        peak_month_index=month,
        distributions=TemporalDistributions(hourly=hourly, weekly=weekly, monthly=monthly),
        timezone=tz_name,
    )
