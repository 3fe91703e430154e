"""
Recurring report schedules.

A ScheduleSpec is an immutable value; edits replace it wholesale. Evaluation
(`is_due_today`) is pure and total: malformed specs are simply never due.
Validation happens once, at creation time.
"""

from .spec import (
    LAST_DAY_OF_MONTH,
    Frequency,
    ScheduleSpec,
    ScheduleStatus,
    Weekday,
    spec_errors,
    validate_spec,
)
from .evaluator import is_due_today, next_due_date
from .cron import CronDelegate, CroniterDelegate
from .registry import ExecutionRecord, Schedule, ScheduleRegistry

__all__ = [
    "LAST_DAY_OF_MONTH",
    "Frequency",
    "ScheduleSpec",
    "ScheduleStatus",
    "Weekday",
    "spec_errors",
    "validate_spec",
    "is_due_today",
    "next_due_date",
    "CronDelegate",
    "CroniterDelegate",
    "ExecutionRecord",
    "Schedule",
    "ScheduleRegistry",
]
