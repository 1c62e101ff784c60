# readquest/utils/dt.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo


@dataclass(frozen=True, slots=True)
class TimeProvider:
    """'Today' in the platform timezone (streak and free-spin days follow it)."""
    timezone: str = "UTC"

    def today(self) -> date:
        tz = ZoneInfo(self.timezone)
        return datetime.now(tz=tz).date()
