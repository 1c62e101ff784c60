# readquest/utils/dates.py
from __future__ import annotations

from datetime import date, datetime, timezone


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utc_now() -> datetime:
    # naive UTC, matching DateTime(timezone=False) columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def period_key(d: date, period: str = "month") -> str:
    """
    Chest claim period for a day.
      month -> "2026-10"
      week  -> "2026-W42" (ISO week)
      day   -> "2026-10-19"
    """
    if period == "month":
        return f"{d.year:04d}-{d.month:02d}"
    if period == "week":
        iso = d.isocalendar()
        return f"{iso[0]:04d}-W{iso[1]:02d}"
    if period == "day":
        return d.isoformat()
    raise ValueError(f"Unknown chest period: {period!r}")
