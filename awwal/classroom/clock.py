"""
Clock - Injectable time source for streak and review computations.

Streaks are counted in calendar days of one explicit timezone, so the
rules can be exercised in tests without touching the host clock.
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Protocol
from zoneinfo import ZoneInfo


DAY_MS = 24 * 60 * 60 * 1000


class Clock(Protocol):
    def now_ms(self) -> int: ...

    def today(self) -> date: ...


def format_day(day: date) -> str:
    """Format a calendar day as YYYY-MM-DD."""
    return day.isoformat()


def day_strings(clock: Clock) -> tuple[str, str]:
    """Return (today, yesterday) as YYYY-MM-DD strings."""
    today = clock.today()
    return format_day(today), format_day(today - timedelta(days=1))


class SystemClock:
    """Wall clock. Calendar days are taken in `tz` (host local time if None)."""

    def __init__(self, tz: Optional[str | tzinfo] = None):
        if isinstance(tz, str):
            tz = ZoneInfo(tz)
        self.tz = tz

    def _now(self) -> datetime:
        if self.tz is None:
            return datetime.now().astimezone()
        return datetime.now(self.tz)

    def now_ms(self) -> int:
        return int(self._now().timestamp() * 1000)

    def today(self) -> date:
        return self._now().date()


class FixedClock:
    """Clock pinned to one instant; `advance` moves it forward."""

    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self.moment = moment

    def now_ms(self) -> int:
        return int(self.moment.timestamp() * 1000)

    def today(self) -> date:
        return self.moment.date()

    def advance(self, **kwargs) -> None:
        self.moment = self.moment + timedelta(**kwargs)
