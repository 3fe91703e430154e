"""
TOML configuration: schedule definitions and governance options.

    [governance]
    level = "strict"
    quality_threshold = 0.8

    [[schedule]]
    id = "weekly-sales"
    name = "Weekly sales"
    report_type = "sales"
    report_format = "pdf"
    frequency = "weekly"
    days_of_week = ["mon", "wed"]
    start_date = 2025-01-06
    execution_time = 06:30:00

Schedules are checked with the same rules the registry applies at creation,
so a file that loads can be registered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from typing import Any

from .errors import GovernanceError, MalformedScheduleError
from .governance.aggregate import GovernanceOptions
from .schedule.cron import CronDelegate
from .schedule.registry import Schedule, ScheduleRegistry, schedule_errors
from .schedule.spec import ScheduleSpec


@dataclass
class ReportgovConfig:
    schedules: list[Schedule] = field(default_factory=list)
    governance: GovernanceOptions = field(default_factory=GovernanceOptions)
    source: Path | None = None

    def registry(self, cron: CronDelegate | None = None) -> ScheduleRegistry:
        """A fresh registry holding every configured schedule."""
        registry = ScheduleRegistry(cron)
        for s in self.schedules:
            registry.create(
                s.name,
                s.report_type,
                s.report_format,
                s.spec,
                schedule_id=s.schedule_id,
                execution_time=s.execution_time,
                created_by=s.created_by,
                max_retries=s.max_retries,
                retry_delay_minutes=s.retry_delay_minutes,
            )
        return registry


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coerce_time(value: Any) -> time:
    if value is None:
        return time(0, 0)
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise MalformedScheduleError([f"invalid execution_time: {value!r}"]) from None


def _parse_schedule(raw: dict[str, Any], index: int) -> Schedule:
    schedule_id = str(raw.get("id", "")).strip() or f"schedule-{index + 1}"
    try:
        return Schedule(
            schedule_id=schedule_id,
            name=str(raw.get("name", schedule_id)),
            report_type=str(raw.get("report_type", "")),
            report_format=str(raw.get("report_format", "pdf")),
            spec=ScheduleSpec.from_dict(raw),
            execution_time=_coerce_time(raw.get("execution_time")),
            created_by=(str(raw["created_by"]) if raw.get("created_by") is not None else None),
            max_retries=int(raw.get("max_retries", 3)),
            retry_delay_minutes=int(raw.get("retry_delay_minutes", 5)),
        )
    except MalformedScheduleError as e:
        raise MalformedScheduleError([f"{schedule_id}: {msg}" for msg in e.errors]) from None
    except (TypeError, ValueError) as e:
        raise MalformedScheduleError([f"{schedule_id}: {e}"]) from None


def parse_config(data: dict[str, Any], *, cron: CronDelegate | None = None, source: Path | None = None) -> ReportgovConfig:
    """Build a config from an already-parsed TOML mapping."""
    try:
        options = GovernanceOptions.from_dict(_coerce_dict(data.get("governance")))
    except GovernanceError:
        raise
    except (TypeError, ValueError) as e:
        raise GovernanceError(f"Invalid governance options: {e}") from None

    schedules: list[Schedule] = []
    errors: list[str] = []
    seen: set[str] = set()
    for index, raw in enumerate(data.get("schedule", [])):
        if not isinstance(raw, dict):
            continue
        try:
            schedule = _parse_schedule(raw, index)
        except MalformedScheduleError as e:
            errors.extend(e.errors)
            continue
        if schedule.schedule_id in seen:
            errors.append(f"duplicate schedule id: {schedule.schedule_id}")
            continue
        seen.add(schedule.schedule_id)
        errors.extend(f"{schedule.schedule_id}: {msg}" for msg in schedule_errors(schedule, cron))
        schedules.append(schedule)

    if errors:
        raise MalformedScheduleError(errors)
    return ReportgovConfig(schedules=schedules, governance=options, source=source)


def load_config(path: Path, *, cron: CronDelegate | None = None) -> ReportgovConfig:
    """Load and validate a reportgov TOML file."""
    import tomllib

    path = Path(path)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise GovernanceError(f"Invalid TOML in {path}: {e}") from None
    return parse_config(data, cron=cron, source=path)
