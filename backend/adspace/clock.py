"""
"Today" for date rules (campaign start, cancellation lead time, active price rules).
Routers get a Clock through `get_clock`; tests override it with FixedClock.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from adspace.config import get_settings


class Clock:
    def __init__(self, tz_name: str = "UTC"):
        self.tz = ZoneInfo(tz_name)

    def today(self) -> date:
        return datetime.now(self.tz).date()


class FixedClock(Clock):
    def __init__(self, fixed: date):
        self.fixed = fixed

    def today(self) -> date:
        return self.fixed


def get_clock() -> Clock:
    return Clock(get_settings().timezone)
