"""
Schedule aggregate and registry.

Each Schedule is keyed by an opaque identity and owns one immutable
ScheduleSpec. Edits replace the spec wholesale; pause/resume/disable only
swap its status. Disabled schedules stay in the registry (logical delete).

Retries, timeouts and backoff belong to the calling scheduler: the registry
only records outcomes and says whether the retry budget allows another try.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Any

from ..errors import GovernanceError, MalformedScheduleError, UnknownEntityError
from ..util import ensure_utc, isoformat_or_none, new_id
from .cron import CronDelegate
from .evaluator import is_due_today, next_due_date
from .spec import ScheduleSpec, ScheduleStatus, spec_errors

logger = logging.getLogger(__name__)

# pause, resume and complete act only on these; DISABLED and COMPLETED stay put.
_LIVE = frozenset({ScheduleStatus.ACTIVE, ScheduleStatus.PAUSED})


@dataclass(frozen=True)
class ExecutionRecord:
    """One run of a scheduled report, as reported by the caller."""

    execution_id: str
    schedule_id: str
    started_at: datetime
    ended_at: datetime
    succeeded: bool
    attempt: int = 0
    triggered_by: str = "scheduled"
    error: str | None = None

    @property
    def duration_ms(self) -> float:
        return (self.ended_at - self.started_at).total_seconds() * 1000.0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "execution_id": self.execution_id,
            "schedule_id": self.schedule_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "succeeded": self.succeeded,
            "attempt": self.attempt,
            "triggered_by": self.triggered_by,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class Schedule:
    """A registered report schedule."""

    schedule_id: str
    name: str
    report_type: str
    report_format: str
    spec: ScheduleSpec
    execution_time: time = time(0, 0)
    created_by: str | None = None
    max_retries: int = 3
    retry_delay_minutes: int = 5

    # Counters (derived from recorded executions, carried across edits)
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    last_execution_at: datetime | None = None
    last_execution_status: str | None = None

    @property
    def status(self) -> ScheduleStatus:
        return self.spec.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "name": self.name,
            "report_type": self.report_type,
            "report_format": self.report_format,
            "spec": self.spec.to_dict(),
            "execution_time": self.execution_time.isoformat(timespec="minutes"),
            "created_by": self.created_by,
            "max_retries": self.max_retries,
            "retry_delay_minutes": self.retry_delay_minutes,
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "failed_executions": self.failed_executions,
            "last_execution_at": isoformat_or_none(self.last_execution_at),
            "last_execution_status": self.last_execution_status,
        }


def schedule_errors(schedule: Schedule, cron: CronDelegate | None = None) -> list[str]:
    errors: list[str] = []
    if not schedule.name.strip():
        errors.append("schedule name is required")
    if not schedule.report_type.strip():
        errors.append("report type is required")
    if not schedule.report_format.strip():
        errors.append("report format is required")
    if schedule.max_retries < 0:
        errors.append("max_retries must not be negative")
    errors.extend(spec_errors(schedule.spec, cron))
    return errors


@dataclass
class _Entry:
    schedule: Schedule
    executions: list[ExecutionRecord] = field(default_factory=list)


class ScheduleRegistry:
    """
    Arena of schedules addressed by opaque ids.

    Not a global: callers own their registry instance. Every mutation runs
    under the registry lock and replaces the stored Schedule value at once.
    """

    def __init__(self, cron: CronDelegate | None = None):
        self.cron = cron
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    # -- lookup ---------------------------------------------------------

    def _entry(self, schedule_id: str) -> _Entry:
        entry = self._entries.get(schedule_id)
        if entry is None:
            raise UnknownEntityError("Schedule", schedule_id)
        return entry

    def get(self, schedule_id: str) -> Schedule:
        with self._lock:
            return self._entry(schedule_id).schedule

    def schedules(
        self,
        *,
        status: ScheduleStatus | None = None,
        created_by: str | None = None,
    ) -> list[Schedule]:
        with self._lock:
            schedules = [e.schedule for e in self._entries.values()]
        if status is not None:
            schedules = [s for s in schedules if s.status is status]
        if created_by is not None:
            schedules = [s for s in schedules if s.created_by == created_by]
        return schedules

    # -- lifecycle ------------------------------------------------------

    def create(
        self,
        name: str,
        report_type: str,
        report_format: str,
        spec: ScheduleSpec,
        *,
        schedule_id: str | None = None,
        execution_time: time = time(0, 0),
        created_by: str | None = None,
        max_retries: int = 3,
        retry_delay_minutes: int = 5,
    ) -> Schedule:
        schedule = Schedule(
            schedule_id=schedule_id or new_id("sched"),
            name=name,
            report_type=report_type,
            report_format=report_format,
            spec=spec,
            execution_time=execution_time,
            created_by=created_by,
            max_retries=max_retries,
            retry_delay_minutes=retry_delay_minutes,
        )
        errors = schedule_errors(schedule, self.cron)
        if errors:
            raise MalformedScheduleError(errors)

        with self._lock:
            if schedule.schedule_id in self._entries:
                raise MalformedScheduleError([f"duplicate schedule id: {schedule.schedule_id}"])
            self._entries[schedule.schedule_id] = _Entry(schedule)

        logger.info(f"Created schedule {schedule.schedule_id} ({name}, {spec.frequency.value})")
        return schedule

    def update(self, schedule_id: str, spec: ScheduleSpec, **changes: Any) -> Schedule:
        """Replace the spec (and optionally descriptive fields); counters are kept."""
        with self._lock:
            entry = self._entry(schedule_id)
            updated = replace(entry.schedule, spec=spec, **changes)
            errors = schedule_errors(updated, self.cron)
            if errors:
                raise MalformedScheduleError(errors)
            entry.schedule = updated
        logger.info(f"Updated schedule {schedule_id}")
        return updated

    def _set_status(self, schedule_id: str, status: ScheduleStatus, allowed_from: frozenset[ScheduleStatus]) -> Schedule:
        with self._lock:
            entry = self._entry(schedule_id)
            current = entry.schedule.status
            if current not in allowed_from:
                raise GovernanceError(f"Cannot set schedule {schedule_id} to {status.value}: it is {current.value}")
            entry.schedule = replace(entry.schedule, spec=entry.schedule.spec.with_status(status))
            schedule = entry.schedule
        logger.info(f"Schedule {schedule_id} is now {status.value}")
        return schedule

    def pause(self, schedule_id: str) -> Schedule:
        return self._set_status(schedule_id, ScheduleStatus.PAUSED, _LIVE)

    def resume(self, schedule_id: str) -> Schedule:
        return self._set_status(schedule_id, ScheduleStatus.ACTIVE, _LIVE)

    def disable(self, schedule_id: str) -> Schedule:
        return self._set_status(schedule_id, ScheduleStatus.DISABLED, frozenset(ScheduleStatus))

    def complete(self, schedule_id: str) -> Schedule:
        return self._set_status(schedule_id, ScheduleStatus.COMPLETED, _LIVE)

    # -- evaluation -----------------------------------------------------

    def due_on(self, today: date) -> list[Schedule]:
        """Schedules whose spec fires on `today`."""
        return [s for s in self.schedules() if is_due_today(s.spec, today, self.cron)]

    def next_run_at(self, schedule_id: str, now: datetime) -> datetime | None:
        """
        Next execution moment at or after `now`.

        Today counts only if its execution time has not passed yet.
        """
        schedule = self.get(schedule_id)
        start = now.date()
        if now.time().replace(tzinfo=None) > schedule.execution_time:
            start += timedelta(days=1)
        due = next_due_date(schedule.spec, start, self.cron)
        if due is None:
            return None
        return datetime.combine(due, schedule.execution_time, tzinfo=now.tzinfo)

    # -- executions -----------------------------------------------------

    def record_execution(
        self,
        schedule_id: str,
        *,
        started_at: datetime,
        ended_at: datetime,
        succeeded: bool,
        attempt: int = 0,
        triggered_by: str = "scheduled",
        error: str | None = None,
    ) -> tuple[ExecutionRecord, bool]:
        """
        Record a run outcome.

        Returns the record and whether the caller may retry (only after a
        failure, while `attempt < max_retries`).
        """
        record = ExecutionRecord(
            execution_id=new_id("exec"),
            schedule_id=schedule_id,
            started_at=ensure_utc(started_at),
            ended_at=ensure_utc(ended_at),
            succeeded=succeeded,
            attempt=attempt,
            triggered_by=triggered_by,
            error=error,
        )
        with self._lock:
            entry = self._entry(schedule_id)
            s = entry.schedule
            entry.schedule = replace(
                s,
                total_executions=s.total_executions + 1,
                successful_executions=s.successful_executions + (1 if succeeded else 0),
                failed_executions=s.failed_executions + (0 if succeeded else 1),
                last_execution_at=record.ended_at,
                last_execution_status="success" if succeeded else f"failure: {error or 'unknown'}",
            )
            entry.executions.append(record)
            may_retry = (not succeeded) and attempt < s.max_retries

        if succeeded:
            logger.info(f"Schedule {schedule_id} executed successfully")
        else:
            logger.error(f"Schedule {schedule_id} execution failed (attempt {attempt}): {error}")
        return record, may_retry

    def execution_history(self, schedule_id: str, limit: int = 50) -> list[ExecutionRecord]:
        """Most recent first."""
        with self._lock:
            records = list(self._entry(schedule_id).executions)
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records[:limit]

    def failed_executions(self, limit: int = 50) -> list[ExecutionRecord]:
        with self._lock:
            records = [r for e in self._entries.values() for r in e.executions if not r.succeeded]
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records[:limit]

    def statistics(self) -> dict[str, Any]:
        schedules = self.schedules()
        total = sum(s.total_executions for s in schedules)
        successful = sum(s.successful_executions for s in schedules)
        failed = sum(s.failed_executions for s in schedules)
        return {
            "total_schedules": len(schedules),
            "active_schedules": sum(1 for s in schedules if s.status is ScheduleStatus.ACTIVE),
            "paused_schedules": sum(1 for s in schedules if s.status is ScheduleStatus.PAUSED),
            "total_executions": total,
            "successful_executions": successful,
            "failed_executions": failed,
            "success_rate": (successful / total * 100.0) if total else 0.0,
        }
