"""
Injectable time source for business rules that depend on "today".

`today()` is the local calendar date of the running host, which is the date
a trading desk books against. `now()` is an aware UTC timestamp used for
audit columns.
"""

from datetime import date, datetime, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def today(self) -> date: ...

    def now(self) -> datetime: ...


class SystemClock:
    def today(self) -> date:
        return date.today()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    def __init__(self, *, today: date, now: Optional[datetime] = None) -> None:
        self._today = today
        self._now = now or datetime(today.year, today.month, today.day, tzinfo=timezone.utc)

    def today(self) -> date:
        return self._today

    def now(self) -> datetime:
        return self._now
