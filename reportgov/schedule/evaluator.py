"""
Day-level due check for report schedules.

`is_due_today` is pure: no I/O, no mutation, no clock reads. Any number of
scheduler workers may call it concurrently. It never raises; a malformed
spec is "not due".
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta

from .cron import CronDelegate
from .spec import LAST_DAY_OF_MONTH, Frequency, ScheduleSpec, ScheduleStatus

logger = logging.getLogger(__name__)


def is_due_today(spec: ScheduleSpec, today: date, cron: CronDelegate | None = None) -> bool:
    """Decide whether `spec` fires on calendar date `today`."""
    if spec.status is not ScheduleStatus.ACTIVE:
        return False
    if spec.start_date is not None and today < spec.start_date:
        return False
    if spec.end_date is not None and today > spec.end_date:
        return False

    if spec.frequency is Frequency.DAILY:
        return _daily_due(spec, today)
    if spec.frequency is Frequency.WEEKLY:
        return today.weekday() in spec.days_of_week
    if spec.frequency is Frequency.MONTHLY:
        return _monthly_due(spec, today)
    if spec.frequency is Frequency.CUSTOM_CRON:
        return _cron_due(spec, today, cron)
    return False


def _daily_due(spec: ScheduleSpec, today: date) -> bool:
    interval = spec.interval_days
    if interval is None or interval <= 1:
        return True
    # No anchor, no modulus.
    if spec.start_date is None:
        return True
    return (today - spec.start_date).days % interval == 0


def _monthly_due(spec: ScheduleSpec, today: date) -> bool:
    dom = spec.day_of_month
    if dom is None:
        return False
    if dom == LAST_DAY_OF_MONTH:
        return today.day == calendar.monthrange(today.year, today.month)[1]
    return today.day == dom


def _cron_due(spec: ScheduleSpec, today: date, cron: CronDelegate | None) -> bool:
    expression = (spec.cron_expression or "").strip()
    if not expression or cron is None:
        return False
    try:
        return bool(cron.is_due(expression, today))
    except ValueError as e:
        logger.warning(f"Cron delegate rejected {expression!r}: {e}")
        return False


def next_due_date(
    spec: ScheduleSpec,
    after: date,
    cron: CronDelegate | None = None,
    *,
    horizon_days: int = 366,
) -> date | None:
    """
    First date on or after `after` for which the spec is due.

    Returns None when nothing fires within `horizon_days` (paused,
    expired, malformed, or simply sparse schedules).
    """
    if spec.status is not ScheduleStatus.ACTIVE:
        return None

    candidate = after
    if spec.start_date is not None and candidate < spec.start_date:
        candidate = spec.start_date

    for _ in range(horizon_days):
        if spec.end_date is not None and candidate > spec.end_date:
            return None
        if is_due_today(spec, candidate, cron):
            return candidate
        candidate += timedelta(days=1)
    return None
