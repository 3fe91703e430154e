from __future__ import annotations

from datetime import date, timedelta

import pytest

from reportgov.schedule.evaluator import is_due_today, next_due_date
from reportgov.schedule.spec import (
    LAST_DAY_OF_MONTH,
    Frequency,
    ScheduleSpec,
    ScheduleStatus,
    Weekday,
    weekdays,
)


class StubCron:
    """Due on the dates it was told about; rejects expressions containing 'bad'."""

    def __init__(self, due_dates: set[date]):
        self.due_dates = due_dates
        self.calls: list[tuple[str, date]] = []

    def is_valid(self, cron_expression: str) -> bool:
        return "bad" not in cron_expression

    def is_due(self, cron_expression: str, at: date) -> bool:
        self.calls.append((cron_expression, at))
        if "bad" in cron_expression:
            raise ValueError("unparseable")
        return at in self.due_dates


def _days(start: date, count: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(count)]


def test_daily_every_third_day_from_start() -> None:
    spec = ScheduleSpec(Frequency.DAILY, start_date=date(2025, 1, 1), interval_days=3)

    assert is_due_today(spec, date(2025, 1, 1))
    assert is_due_today(spec, date(2025, 1, 4))
    assert is_due_today(spec, date(2025, 1, 7))
    assert not is_due_today(spec, date(2025, 1, 2))
    assert not is_due_today(spec, date(2025, 1, 3))


@pytest.mark.parametrize("interval", [None, 0, 1])
def test_daily_small_or_missing_interval_is_every_day(interval: int | None) -> None:
    spec = ScheduleSpec(Frequency.DAILY, start_date=date(2025, 1, 1), interval_days=interval)
    assert all(is_due_today(spec, d) for d in _days(date(2025, 1, 1), 10))


def test_daily_without_start_date_is_every_day() -> None:
    spec = ScheduleSpec(Frequency.DAILY, interval_days=5)
    assert all(is_due_today(spec, d) for d in _days(date(2025, 3, 1), 7))


def test_weekly_only_on_listed_weekdays() -> None:
    spec = ScheduleSpec(Frequency.WEEKLY, days_of_week=frozenset({Weekday.MONDAY, Weekday.WEDNESDAY}))

    due = [d for d in _days(date(2025, 1, 1), 28) if is_due_today(spec, d)]

    assert len(due) == 8
    assert {d.weekday() for d in due} == {0, 2}


def test_weekly_without_weekdays_is_never_due() -> None:
    spec = ScheduleSpec(Frequency.WEEKLY)
    assert not any(is_due_today(spec, d) for d in _days(date(2025, 1, 1), 14))


def test_monthly_last_day_handles_february_and_leap_years() -> None:
    spec = ScheduleSpec(Frequency.MONTHLY, day_of_month=LAST_DAY_OF_MONTH)

    assert is_due_today(spec, date(2025, 2, 28))
    assert is_due_today(spec, date(2024, 2, 29))
    assert not is_due_today(spec, date(2024, 2, 28))
    assert [d for d in _days(date(2025, 2, 1), 28) if is_due_today(spec, d)] == [date(2025, 2, 28)]
    assert is_due_today(spec, date(2025, 4, 30))
    assert is_due_today(spec, date(2025, 12, 31))


def test_monthly_fixed_day_skips_short_months() -> None:
    spec = ScheduleSpec(Frequency.MONTHLY, day_of_month=31)

    assert is_due_today(spec, date(2025, 1, 31))
    assert not any(is_due_today(spec, d) for d in _days(date(2025, 4, 1), 30))


def test_monthly_without_day_is_never_due() -> None:
    spec = ScheduleSpec(Frequency.MONTHLY)
    assert not is_due_today(spec, date(2025, 1, 1))


@pytest.mark.parametrize("status", [ScheduleStatus.PAUSED, ScheduleStatus.DISABLED, ScheduleStatus.COMPLETED])
def test_inactive_schedules_are_never_due(status: ScheduleStatus) -> None:
    spec = ScheduleSpec(Frequency.DAILY, status=status)
    assert not is_due_today(spec, date(2025, 1, 1))


def test_start_and_end_dates_are_inclusive() -> None:
    spec = ScheduleSpec(Frequency.DAILY, start_date=date(2025, 1, 10), end_date=date(2025, 1, 12))

    assert not is_due_today(spec, date(2025, 1, 9))
    assert is_due_today(spec, date(2025, 1, 10))
    assert is_due_today(spec, date(2025, 1, 12))
    assert not is_due_today(spec, date(2025, 1, 13))


def test_custom_cron_is_delegated() -> None:
    cron = StubCron({date(2025, 1, 15)})
    spec = ScheduleSpec(Frequency.CUSTOM_CRON, cron_expression="0 9 15 * *")

    assert is_due_today(spec, date(2025, 1, 15), cron)
    assert not is_due_today(spec, date(2025, 1, 16), cron)
    assert cron.calls == [("0 9 15 * *", date(2025, 1, 15)), ("0 9 15 * *", date(2025, 1, 16))]


def test_custom_cron_never_raises() -> None:
    spec = ScheduleSpec(Frequency.CUSTOM_CRON, cron_expression="bad expression")

    assert not is_due_today(spec, date(2025, 1, 1), StubCron(set()))
    assert not is_due_today(spec, date(2025, 1, 1), None)
    assert not is_due_today(ScheduleSpec(Frequency.CUSTOM_CRON), date(2025, 1, 1), StubCron(set()))


def test_custom_cron_is_not_consulted_outside_the_date_range() -> None:
    cron = StubCron({date(2025, 1, 1)})
    spec = ScheduleSpec(Frequency.CUSTOM_CRON, cron_expression="@daily", start_date=date(2025, 2, 1))

    assert not is_due_today(spec, date(2025, 1, 1), cron)
    assert cron.calls == []


def test_evaluation_is_repeatable() -> None:
    specs = [
        ScheduleSpec(Frequency.DAILY, start_date=date(2025, 1, 1), interval_days=4),
        ScheduleSpec(Frequency.WEEKLY, days_of_week=weekdays(["fri", "sunday"])),
        ScheduleSpec(Frequency.MONTHLY, day_of_month=LAST_DAY_OF_MONTH),
    ]
    for spec in specs:
        for d in _days(date(2024, 12, 1), 90):
            assert is_due_today(spec, d) == is_due_today(spec, d)


def test_next_due_date_finds_first_firing() -> None:
    spec = ScheduleSpec(Frequency.MONTHLY, day_of_month=LAST_DAY_OF_MONTH)

    assert next_due_date(spec, date(2025, 2, 1)) == date(2025, 2, 28)
    assert next_due_date(spec, date(2025, 2, 28)) == date(2025, 2, 28)


def test_next_due_date_starts_at_start_date() -> None:
    spec = ScheduleSpec(Frequency.DAILY, start_date=date(2025, 3, 1), interval_days=7)
    assert next_due_date(spec, date(2025, 1, 1)) == date(2025, 3, 1)


def test_next_due_date_none_when_nothing_fires() -> None:
    expired = ScheduleSpec(Frequency.DAILY, end_date=date(2025, 1, 1))
    paused = ScheduleSpec(Frequency.DAILY, status=ScheduleStatus.PAUSED)
    malformed = ScheduleSpec(Frequency.WEEKLY)

    assert next_due_date(expired, date(2025, 1, 2)) is None
    assert next_due_date(paused, date(2025, 1, 2)) is None
    assert next_due_date(malformed, date(2025, 1, 2), horizon_days=30) is None
