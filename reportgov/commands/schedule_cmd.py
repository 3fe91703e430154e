"""Schedule commands - due checks, next run dates and validation over a TOML schedule file."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..clock import Clock, SystemClock
from ..config import ReportgovConfig, load_config
from ..errors import GovernanceError
from ..schedule.cron import CroniterDelegate
from ..schedule.evaluator import is_due_today, next_due_date
from ..schedule.registry import Schedule
from ..schedule.spec import LAST_DAY_OF_MONTH


def _load(path: Path, err: Console) -> ReportgovConfig | None:
    try:
        return load_config(path, cron=CroniterDelegate())
    except GovernanceError as e:
        err.print(f"Invalid schedule file {path}:", style="bold red")
        for line in getattr(e, "errors", [e.message]):
            err.print(f"  - {line}", style="red")
        return None


def _describe(schedule: Schedule) -> str:
    spec = schedule.spec
    if spec.interval_days and spec.interval_days > 1:
        return f"every {spec.interval_days} days"
    if spec.days_of_week:
        return ", ".join(d.name.lower()[:3] for d in sorted(spec.days_of_week))
    if spec.day_of_month is not None:
        return "last day" if spec.day_of_month == LAST_DAY_OF_MONTH else f"day {spec.day_of_month}"
    if spec.cron_expression:
        return spec.cron_expression
    return ""


def run_schedule_due(
    path: Path,
    *,
    on: date | None = None,
    output_json: bool = False,
    clock: Clock | None = None,
) -> int:
    """List schedules that fire on a date (default today)."""
    err = Console(stderr=True)
    config = _load(path, err)
    if config is None:
        return 1

    day = on or (clock or SystemClock()).today()
    cron = CroniterDelegate()
    due = [s for s in config.schedules if is_due_today(s.spec, day, cron)]

    if output_json:
        print(json.dumps(
            {"date": day.isoformat(), "due": [s.to_dict() for s in due]},
            indent=2,
        ))
        return 0

    console = Console()
    table = Table(title=f"Due on {day.isoformat()}")
    table.add_column("Schedule", style="cyan")
    table.add_column("Report")
    table.add_column("Frequency")
    table.add_column("Rule", style="dim")
    table.add_column("Time")
    for s in due:
        table.add_row(
            s.schedule_id,
            f"{s.report_type} ({s.report_format})",
            s.spec.frequency.value,
            _describe(s),
            s.execution_time.isoformat(timespec="minutes"),
        )
    console.print(table)
    console.print(f"\nDue: {len(due)} of {len(config.schedules)} schedules")
    return 0


def run_schedule_next(
    path: Path,
    *,
    start: date | None = None,
    horizon_days: int = 366,
    clock: Clock | None = None,
) -> int:
    """Show the next due date of every schedule."""
    err = Console(stderr=True)
    config = _load(path, err)
    if config is None:
        return 1

    after = start or (clock or SystemClock()).today()
    cron = CroniterDelegate()

    console = Console()
    table = Table(title=f"Next runs from {after.isoformat()}")
    table.add_column("Schedule", style="cyan")
    table.add_column("Status")
    table.add_column("Next due")
    for s in config.schedules:
        nxt = next_due_date(s.spec, after, cron, horizon_days=horizon_days)
        table.add_row(
            s.schedule_id,
            s.status.value,
            f"{nxt.isoformat()} {s.execution_time.isoformat(timespec='minutes')}" if nxt else "-",
        )
    console.print(table)
    return 0


def run_schedule_validate(path: Path) -> int:
    """Validate a schedule file; exit 1 listing every problem found."""
    err = Console(stderr=True)
    config = _load(path, err)
    if config is None:
        return 1

    Console().print(
        f"OK: {len(config.schedules)} schedule(s), governance level {config.governance.level.value}",
        style="green",
    )
    return 0
