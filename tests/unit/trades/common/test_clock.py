from datetime import date, datetime, timedelta, timezone

from src.core.common import clock as clock_module
from src.core.common.clock import FixedClock, SystemClock


class _LateEveningDate(date):
    """Local date on a desk west of UTC, after UTC has rolled to the next day."""

    @classmethod
    def today(cls):
        return cls(2025, 1, 20)


def test_system_clock_today_uses_local_calendar_date(monkeypatch):
    monkeypatch.setattr(clock_module, "date", _LateEveningDate)

    assert SystemClock().today() == date(2025, 1, 20)


def test_system_clock_now_is_aware_utc():
    now = SystemClock().now()

    assert now.tzinfo == timezone.utc
    assert abs(datetime.now(timezone.utc) - now) < timedelta(minutes=1)


def test_fixed_clock_defaults_now_to_midnight_utc():
    clock = FixedClock(today=date(2025, 1, 20))

    assert clock.today() == date(2025, 1, 20)
    assert clock.now() == datetime(2025, 1, 20, tzinfo=timezone.utc)
