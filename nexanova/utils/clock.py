from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from loguru import logger


class Clock(Protocol):
    def today(self) -> date:  # pragma: no cover - interface
        ...


class SystemClock:
    """
    Today's date in the given IANA zone. Unknown zones fall back to UTC.
    """

    def __init__(self, tz_name: Optional[str] = None):
        self.tz_name = tz_name

    def today(self) -> date:
        now_utc = datetime.now(timezone.utc)
        if not self.tz_name:
            return now_utc.date()
        try:
            zone = ZoneInfo(self.tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone '{}', using UTC", self.tz_name)
            return now_utc.date()
        return now_utc.astimezone(zone).date()


class FixedClock:
    """Pinned day, for tests and replaying history."""

    def __init__(self, day: date):
        self.day = day

    def today(self) -> date:
        return self.day
