"""
SpotFeed | Core value types shared across the price pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

WINDOW_DAYS = 2


@dataclass(frozen=True)
class Observation:
    """A single (timestamp, price) point as received from the market API."""

    timestamp: datetime   # aware, UTC
    price: float          # price per kWh (source €/MWh ÷ 1000)


@dataclass(frozen=True)
class FetchWindow:
    """Two-day request window starting at midnight UTC ("today and tomorrow")."""

    start: datetime
    end: datetime

    @classmethod
    def for_instant(cls, now: Optional[datetime] = None) -> "FetchWindow":
        """Window covering the UTC day containing *now* and the day after."""
        if now is None:
            now = datetime.now(tz=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(start=start, end=start + timedelta(days=WINDOW_DAYS))

    @property
    def first_day_end(self) -> datetime:
        """End of the range the normalizer guarantees to be complete."""
        return self.start + timedelta(days=1)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"
