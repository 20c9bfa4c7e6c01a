import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from article_spinner.models import ArticleRequest
from article_spinner.schedule import SCHEDULE_INTERVAL, ScheduleCalculator

from fakes import FIXED_NOW, MemoryStore


def test_base_date_defaults_to_tomorrow_noon() -> None:
    calculator = ScheduleCalculator(MemoryStore(), clock=lambda: FIXED_NOW)

    base = asyncio.run(calculator.base_date())

    assert base == datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def test_base_date_uses_latest_future_scheduled_article() -> None:
    latest = datetime(2026, 12, 1, 12, 0, tzinfo=timezone.utc)
    calculator = ScheduleCalculator(MemoryStore(latest=latest), clock=lambda: FIXED_NOW)

    assert asyncio.run(calculator.base_date()) == latest


def test_assign_advances_rolling_base_by_a_week() -> None:
    base = datetime(2026, 12, 1, 12, 0, tzinfo=timezone.utc)
    requests = [ArticleRequest(title=f"Article {idx}") for idx in range(4)]
    calculator = ScheduleCalculator(MemoryStore(), clock=lambda: FIXED_NOW)

    schedule = calculator.assign(requests, base)

    dates = [schedule[request.request_id] for request in requests]
    assert SCHEDULE_INTERVAL == timedelta(days=7)
    assert dates == [base + timedelta(days=7 * step) for step in range(1, 5)]
    assert all(earlier < later for earlier, later in zip(dates, dates[1:]))


def test_explicit_dates_are_kept_and_do_not_move_rolling_base() -> None:
    base = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    explicit = datetime(2027, 3, 1, 9, 0, tzinfo=timezone.utc)
    requests = [
        ArticleRequest(title="Pinned", scheduled_for=explicit),
        ArticleRequest(title="Auto One"),
        ArticleRequest(title="Auto Two"),
    ]
    calculator = ScheduleCalculator(MemoryStore(), clock=lambda: FIXED_NOW)

    schedule = calculator.assign(requests, base)

    assert schedule[requests[0].request_id] == explicit
    assert schedule[requests[1].request_id] == base + timedelta(days=7)
    assert schedule[requests[2].request_id] == base + timedelta(days=14)
    # An explicit date earlier in the batch may land after later auto-scheduled articles.
    assert schedule[requests[0].request_id] > schedule[requests[2].request_id]


def test_explicit_date_before_auto_dates_is_not_reordered() -> None:
    base = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    explicit = datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)
    requests = [ArticleRequest(title="Auto"), ArticleRequest(title="Pinned", scheduled_for=explicit)]
    calculator = ScheduleCalculator(MemoryStore(), clock=lambda: FIXED_NOW)

    schedule = calculator.assign(requests, base)

    assert schedule[requests[1].request_id] < schedule[requests[0].request_id]


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_default_base_is_local_noon_across_dst_change(monkeypatch) -> None:
    monkeypatch.setenv("TZ", "EST5EDT,M3.2.0,M11.1.0")
    time.tzset()
    try:
        # 2026-11-01 is the first day back on standard time
        calculator = ScheduleCalculator(MemoryStore(), clock=lambda: datetime(2026, 10, 31, 9, 30))

        base = calculator.default_base()
    finally:
        monkeypatch.undo()
        time.tzset()

    assert (base.year, base.month, base.day, base.hour, base.minute) == (2026, 11, 1, 12, 0)
    assert base.utcoffset() == timedelta(hours=-5)


def test_default_base_keeps_aware_clock_timezone() -> None:
    clock_now = datetime(2026, 10, 17, 23, 45, tzinfo=timezone(timedelta(hours=2)))
    calculator = ScheduleCalculator(MemoryStore(), clock=lambda: clock_now)

    assert calculator.default_base() == datetime(2026, 10, 18, 12, 0, tzinfo=timezone(timedelta(hours=2)))
