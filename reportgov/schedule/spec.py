"""
Schedule specification value type and creation-time validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Iterable

from ..errors import MalformedScheduleError

if TYPE_CHECKING:
    from .cron import CronDelegate


# Sentinel for "last day of the month" in MONTHLY schedules.
LAST_DAY_OF_MONTH = -1


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM_CRON = "custom_cron"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    DISABLED = "disabled"  # logically deleted
    COMPLETED = "completed"


class Weekday(IntEnum):
    """ISO weekday names with `date.weekday()` numbering (Monday = 0)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: Any) -> Weekday:
        if isinstance(value, Weekday):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip().upper()
        for day in cls:
            if day.name == text or day.name[:3] == text:
                return day
        raise ValueError(f"Unknown weekday: {value!r}")


@dataclass(frozen=True)
class ScheduleSpec:
    """
    When a recurring report job fires, at day granularity.

    Only the fields relevant to `frequency` are consulted. Time of day is
    not part of the spec; it governs the minute of execution, not the
    day-level due check.
    """

    frequency: Frequency
    start_date: date | None = None
    end_date: date | None = None  # inclusive
    interval_days: int | None = None  # DAILY
    days_of_week: frozenset[Weekday] = field(default_factory=frozenset)  # WEEKLY
    day_of_month: int | None = None  # MONTHLY; LAST_DAY_OF_MONTH for last day
    cron_expression: str | None = None  # CUSTOM_CRON
    status: ScheduleStatus = ScheduleStatus.ACTIVE

    def with_status(self, status: ScheduleStatus) -> ScheduleSpec:
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "frequency": self.frequency.value,
            "status": self.status.value,
        }
        if self.start_date is not None:
            result["start_date"] = self.start_date.isoformat()
        if self.end_date is not None:
            result["end_date"] = self.end_date.isoformat()
        if self.interval_days is not None:
            result["interval_days"] = self.interval_days
        if self.days_of_week:
            result["days_of_week"] = [d.name.lower() for d in sorted(self.days_of_week)]
        if self.day_of_month is not None:
            result["day_of_month"] = self.day_of_month
        if self.cron_expression is not None:
            result["cron_expression"] = self.cron_expression
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduleSpec:
        """
        Build a spec from a JSON/TOML mapping.

        Dates may be `date` objects (TOML) or ISO strings (JSON).
        """
        raw_frequency = data.get("frequency")
        if raw_frequency is None:
            raise MalformedScheduleError(["frequency is required"])
        try:
            frequency = Frequency(str(raw_frequency).strip().lower())
        except ValueError:
            raise MalformedScheduleError([f"unknown frequency: {raw_frequency!r}"]) from None

        try:
            days = frozenset(Weekday.parse(d) for d in data.get("days_of_week", []) or [])
        except ValueError as e:
            raise MalformedScheduleError([str(e)]) from None

        status_raw = data.get("status", ScheduleStatus.ACTIVE.value)
        try:
            status = ScheduleStatus(str(status_raw).strip().lower())
        except ValueError:
            raise MalformedScheduleError([f"unknown status: {status_raw!r}"]) from None

        return cls(
            frequency=frequency,
            start_date=_coerce_date(data.get("start_date")),
            end_date=_coerce_date(data.get("end_date")),
            interval_days=_coerce_int(data.get("interval_days")),
            days_of_week=days,
            day_of_month=_coerce_int(data.get("day_of_month")),
            cron_expression=(str(data["cron_expression"]) if data.get("cron_expression") is not None else None),
            status=status,
        )


def _coerce_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise MalformedScheduleError([f"invalid date: {value!r}"]) from None


def _coerce_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedScheduleError([f"invalid integer: {value!r}"]) from None


def spec_errors(spec: ScheduleSpec, cron: CronDelegate | None = None) -> list[str]:
    """
    Return the list of validation errors for a spec (empty if valid).

    Cron expressions are only checked when a delegate is supplied; the
    engine itself never parses them.
    """
    errors: list[str] = []

    if spec.start_date is not None and spec.end_date is not None and spec.end_date < spec.start_date:
        errors.append("end_date must not be before start_date")

    if spec.frequency is Frequency.DAILY:
        if spec.interval_days is not None and spec.interval_days < 1:
            errors.append("interval_days must be at least 1")

    elif spec.frequency is Frequency.WEEKLY:
        if not spec.days_of_week:
            errors.append("days_of_week required for weekly schedule")

    elif spec.frequency is Frequency.MONTHLY:
        dom = spec.day_of_month
        if dom is None:
            errors.append("day_of_month required for monthly schedule")
        elif dom != LAST_DAY_OF_MONTH and not (1 <= dom <= 31):
            errors.append("day_of_month must be between 1-31 or -1 for last day")

    elif spec.frequency is Frequency.CUSTOM_CRON:
        expression = (spec.cron_expression or "").strip()
        if not expression:
            errors.append("cron_expression required for custom schedule")
        elif cron is not None and not cron.is_valid(expression):
            errors.append(f"invalid cron expression: {expression!r}")

    return errors


def validate_spec(spec: ScheduleSpec, cron: CronDelegate | None = None) -> ScheduleSpec:
    """Raise MalformedScheduleError unless the spec is well-formed; return it otherwise."""
    errors = spec_errors(spec, cron)
    if errors:
        raise MalformedScheduleError(errors)
    return spec


def weekdays(values: Iterable[Any]) -> frozenset[Weekday]:
    """Convenience constructor: ``weekdays(["mon", "wed"])``."""
    return frozenset(Weekday.parse(v) for v in values)
