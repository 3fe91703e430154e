"""
Cron evaluation boundary.

The engine never parses cron expressions. CUSTOM_CRON schedules are handed
to a CronDelegate; the default one is backed by croniter.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Protocol

from croniter import croniter


class CronDelegate(Protocol):
    def is_due(self, cron_expression: str, at: date) -> bool:
        ...

    def is_valid(self, cron_expression: str) -> bool:
        ...


class CroniterDelegate:
    """
    Due if the expression fires at least once during the calendar day `at`.

    Expressions are evaluated in naive local time of the schedule; the
    day-level check does not depend on a timezone.
    """

    def is_valid(self, cron_expression: str) -> bool:
        return croniter.is_valid(cron_expression)

    def is_due(self, cron_expression: str, at: date) -> bool:
        if not croniter.is_valid(cron_expression):
            raise ValueError(f"invalid cron expression: {cron_expression!r}")
        # Start one second before midnight so a 00:00 firing counts.
        start = datetime.combine(at, time.min) - timedelta(seconds=1)
        fire = croniter(cron_expression, start).get_next(datetime)
        return fire.date() == at
