"""
Governance service: the entry point callers use to mutate report governance.

Each report identity gets its own lock. A mutation loads a private copy of
the aggregate, applies one operation, and saves it back; if the operation
raises, nothing is saved. Different reports are mutated concurrently.

Audit records are emitted after the save succeeded and outside the lock.
A failing audit sink is logged, never propagated: the transition already
happened.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, TypeVar

from ..clock import Clock, SystemClock
from ..errors import GovernanceError, QualityGateError
from .aggregate import GovernanceAggregate, GovernanceOptions
from .approval import ApprovalStep, WorkflowStatus
from .changes import ChangeRequest
from .events import REPORT_DEPRECATED, STAGE_TRANSITIONED, AuditRecord, StageTransition
from .freeze import ChangeFreezeGate
from .quality import QualityCheck, QualityGate, QualityScore
from .releases import GovernancePolicy, Release
from .repository import AuditSink, InMemoryRepository, NullAuditSink, Repository
from .stages import LifecycleStage
from .versions import ChangeType, Version, VersionNumber

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Readiness:
    """Release go/no-go for one report at one moment."""

    report_id: str
    ready: bool
    approval_status: WorkflowStatus
    frozen: bool
    quality_passed: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_id": self.report_id,
            "ready": self.ready,
            "approval_status": self.approval_status.value,
            "frozen": self.frozen,
            "quality_passed": self.quality_passed,
            "reasons": list(self.reasons),
        }


class GovernanceService:
    def __init__(
        self,
        repository: Repository | None = None,
        *,
        audit: AuditSink | None = None,
        clock: Clock | None = None,
    ):
        self.repository: Repository = repository if repository is not None else InMemoryRepository()
        self.audit: AuditSink = audit if audit is not None else NullAuditSink()
        self.clock: Clock = clock if clock is not None else SystemClock()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -- plumbing -------------------------------------------------------

    def _lock_for(self, report_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(report_id)
            if lock is None:
                lock = self._locks[report_id] = threading.Lock()
            return lock

    def _mutate(self, report_id: str, operation: Callable[[GovernanceAggregate], T]) -> T:
        with self._lock_for(report_id):
            aggregate = self.repository.load(report_id)
            result = operation(aggregate)
            self.repository.save(aggregate)
            return result

    def _emit(self, report_id: str, transition: StageTransition) -> None:
        event_type = REPORT_DEPRECATED if transition.to_stage is LifecycleStage.DEPRECATED else STAGE_TRANSITIONED
        try:
            self.audit.emit(AuditRecord(event_type=event_type, report_id=report_id, transition=transition))
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Audit sink failed for report {report_id} ({transition.transition_id}): {e}")

    def get(self, report_id: str) -> GovernanceAggregate:
        """A detached copy of the stored aggregate."""
        return self.repository.load(report_id)

    # -- registration ---------------------------------------------------

    def register(
        self,
        report_id: str,
        actor: str,
        *,
        report_name: str = "",
        owner: str | None = None,
        options: GovernanceOptions | None = None,
    ) -> GovernanceAggregate:
        """Create governance for a report, already in DRAFT."""
        now = self.clock.now()
        with self._lock_for(report_id):
            if self.repository.exists(report_id):
                raise GovernanceError(f"Governance already registered for report {report_id}")
            aggregate = GovernanceAggregate.register(
                report_id,
                actor,
                now,
                report_name=report_name,
                owner=owner,
                options=options,
            )
            self.repository.save(aggregate)

        logger.info(f"Registered governance for report {report_id} by {actor}")
        self._emit(report_id, aggregate.lifecycle.history[-1])
        return aggregate

    # -- lifecycle ------------------------------------------------------

    def transition(
        self,
        report_id: str,
        to_stage: LifecycleStage,
        actor: str,
        reason: str | None = None,
        *,
        replacement_report_id: str | None = None,
        retirement_date: datetime | None = None,
    ) -> StageTransition:
        """
        Move a report to `to_stage`.

        On top of the state machine rules, publication is refused while
        recorded quality checks fail (when the report's options ask for it).
        """
        now = self.clock.now()

        def apply(aggregate: GovernanceAggregate) -> StageTransition:
            aggregate.check_transition(to_stage, now)
            if (
                to_stage is LifecycleStage.PUBLISHED
                and aggregate.options.quality_gate_on_publish
                and not aggregate.quality.all_passed()
            ):
                failed = ", ".join(c.name for c in aggregate.quality.failed_checks())
                raise QualityGateError(f"All quality checks must pass before publishing (failed: {failed})")
            return aggregate.transition(
                to_stage,
                actor,
                reason,
                now=now,
                replacement_report_id=replacement_report_id,
                retirement_date=retirement_date,
            )

        try:
            transition = self._mutate(report_id, apply)
        except GovernanceError as e:
            logger.warning(f"Refused transition of report {report_id} to {to_stage.value} by {actor}: {e}")
            raise

        logger.info(
            f"Transitioned report {report_id} from "
            f"{transition.from_stage.value if transition.from_stage else '(none)'} "
            f"to {transition.to_stage.value} by {actor}"
        )
        if to_stage is LifecycleStage.DEPRECATED:
            logger.warning(f"Report {report_id} deprecated by {actor}: {reason or 'no reason given'}")
        self._emit(report_id, transition)
        return transition

    def deprecate(
        self,
        report_id: str,
        actor: str,
        reason: str | None = None,
        *,
        replacement_report_id: str | None = None,
        retirement_date: datetime | None = None,
    ) -> StageTransition:
        return self.transition(
            report_id,
            LifecycleStage.DEPRECATED,
            actor,
            reason,
            replacement_report_id=replacement_report_id,
            retirement_date=retirement_date,
        )

    # -- approval workflow ----------------------------------------------

    def add_approval_step(
        self,
        report_id: str,
        approver_id: str,
        *,
        name: str = "",
        approver_role: str | None = None,
        required: bool = True,
        timeout_days: int | None = None,
        actor: str | None = None,
    ) -> ApprovalStep:
        now = self.clock.now()
        step = self._mutate(
            report_id,
            lambda a: a.add_approval_step(
                approver_id,
                now=now,
                name=name,
                approver_role=approver_role,
                required=required,
                timeout_days=timeout_days,
                actor=actor,
            ),
        )
        logger.info(f"Added approval step {step.step_id} ({approver_id}) to report {report_id}")
        return step

    def approve_step(self, report_id: str, step_id: str, actor: str, comment: str | None = None) -> WorkflowStatus:
        now = self.clock.now()
        status = self._mutate(report_id, lambda a: a.approve_step(step_id, actor, comment, now=now))
        logger.info(f"Approval step {step_id} of report {report_id} approved by {actor} (workflow {status.value})")
        return status

    def reject_step(self, report_id: str, step_id: str, actor: str, comment: str | None = None) -> WorkflowStatus:
        now = self.clock.now()
        status = self._mutate(report_id, lambda a: a.reject_step(step_id, actor, comment, now=now))
        logger.warning(f"Approval step {step_id} of report {report_id} rejected by {actor}: {comment or ''}")
        return status

    def restart_workflow(self, report_id: str, actor: str) -> WorkflowStatus:
        now = self.clock.now()
        status = self._mutate(report_id, lambda a: a.restart_workflow(actor, now=now))
        logger.info(f"Approval workflow of report {report_id} restarted by {actor}")
        return status

    # -- versions -------------------------------------------------------

    def add_version(self, report_id: str, version: Version) -> Version:
        now = self.clock.now()
        added = self._mutate(report_id, lambda a: a.add_version(version, actor=version.created_by, now=now))
        logger.info(f"Report {report_id} is now at version {added.version_number}")
        return added

    def create_version(
        self,
        report_id: str,
        change_type: ChangeType,
        actor: str,
        *,
        description: str = "",
        number: VersionNumber | None = None,
    ) -> Version:
        now = self.clock.now()
        added = self._mutate(
            report_id,
            lambda a: a.create_version(change_type, actor, now=now, description=description, number=number),
        )
        logger.info(f"Created version {added.version_number} ({change_type.value}) for report {report_id}")
        return added

    # -- quality --------------------------------------------------------

    def record_check(self, report_id: str, check: QualityCheck) -> QualityGate:
        now = self.clock.now()
        gate = self._mutate(report_id, lambda a: a.record_check(check, now=now))
        if not check.passed:
            logger.warning(f"Quality check {check.name} failed for report {report_id} (severity {check.severity})")
        return gate

    def quality_score(self, report_id: str) -> QualityScore:
        return self.repository.load(report_id).quality_score()

    # -- freeze ---------------------------------------------------------

    def activate_freeze(self, report_id: str, until: datetime, actor: str, reason: str | None = None) -> ChangeFreezeGate:
        now = self.clock.now()
        gate = self._mutate(report_id, lambda a: a.activate_freeze(until, actor, now=now, reason=reason))
        logger.warning(f"Change freeze on report {report_id} until {until.isoformat()} by {actor}")
        return gate

    def lift_freeze(self, report_id: str, actor: str) -> ChangeFreezeGate:
        now = self.clock.now()
        gate = self._mutate(report_id, lambda a: a.lift_freeze(actor, now=now))
        logger.info(f"Change freeze on report {report_id} lifted by {actor}")
        return gate

    def is_frozen(self, report_id: str) -> bool:
        return self.repository.load(report_id).is_frozen(self.clock.now())

    # -- change requests ------------------------------------------------

    def submit_change(
        self,
        report_id: str,
        title: str,
        change_type: ChangeType,
        actor: str,
        *,
        description: str = "",
        impacts_production: bool = False,
        scheduled_for: datetime | None = None,
    ) -> ChangeRequest:
        now = self.clock.now()
        request = self._mutate(
            report_id,
            lambda a: a.submit_change(
                title,
                change_type,
                actor,
                now=now,
                description=description,
                impacts_production=impacts_production,
                scheduled_for=scheduled_for,
            ),
        )
        logger.info(f"Change request {request.change_id} submitted for report {report_id} by {actor}")
        return request

    def approve_change(self, report_id: str, change_id: str, actor: str) -> ChangeRequest:
        now = self.clock.now()
        return self._mutate(report_id, lambda a: a.approve_change(change_id, actor, now=now))

    def reject_change(self, report_id: str, change_id: str, actor: str, reason: str | None = None) -> ChangeRequest:
        now = self.clock.now()
        request = self._mutate(report_id, lambda a: a.reject_change(change_id, actor, reason, now=now))
        logger.warning(f"Change request {change_id} of report {report_id} rejected by {actor}")
        return request

    def implement_change(self, report_id: str, change_id: str, actor: str) -> ChangeRequest:
        now = self.clock.now()
        return self._mutate(report_id, lambda a: a.implement_change(change_id, actor, now=now))

    # -- policies and releases ------------------------------------------

    def add_policy(self, report_id: str, policy: GovernancePolicy) -> GovernancePolicy:
        now = self.clock.now()
        return self._mutate(report_id, lambda a: a.add_policy(policy, now=now))

    def create_release(
        self,
        report_id: str,
        name: str,
        version_number: str,
        actor: str,
        *,
        scheduled_at: datetime | None = None,
        notes: str = "",
    ) -> Release:
        now = self.clock.now()
        return self._mutate(
            report_id,
            lambda a: a.create_release(name, version_number, actor, now=now, scheduled_at=scheduled_at, notes=notes),
        )

    def mark_released(self, report_id: str, release_id: str, actor: str) -> Release:
        now = self.clock.now()
        release = self._mutate(report_id, lambda a: a.mark_released(release_id, actor, now=now))
        logger.info(f"Report {report_id} released as {release.version_number} by {actor}")
        return release

    # -- read models ----------------------------------------------------

    def readiness(self, report_id: str, now: datetime | None = None) -> Readiness:
        """
        Combine approval, freeze and quality gates into one release decision.

        Nothing is blocked here; callers decide what to do with `ready`.
        """
        aggregate = self.repository.load(report_id)
        now = now or self.clock.now()

        reasons: list[str] = []
        approval = aggregate.approval_status
        if aggregate.options.approval_required and approval is not WorkflowStatus.APPROVED:
            reasons.append(f"approval workflow is {approval.value}")
        frozen = aggregate.is_frozen(now)
        if frozen:
            reasons.append(f"changes frozen until {aggregate.freeze.until.isoformat()}")
        quality_passed = aggregate.quality.all_passed()
        if not quality_passed:
            reasons.append(f"{aggregate.quality.failed_count} quality check(s) failed")

        return Readiness(
            report_id=report_id,
            ready=not reasons,
            approval_status=approval,
            frozen=frozen,
            quality_passed=quality_passed,
            reasons=tuple(reasons),
        )

    def statistics(self) -> dict[str, Any]:
        aggregates = [self.repository.load(report_id) for report_id in self.repository.ids()]
        by_stage = Counter(a.current_stage.value for a in aggregates if a.current_stage is not None)
        by_level = Counter(a.options.level.value for a in aggregates)
        return {
            "total_reports": len(aggregates),
            "total_approval_steps": sum(len(a.workflow.steps) for a in aggregates),
            "total_changes": sum(len(a.changes.requests) for a in aggregates),
            "deprecated_reports": sum(1 for a in aggregates if a.lifecycle.deprecated),
            "reports_by_stage": dict(sorted(by_stage.items())),
            "reports_by_level": dict(sorted(by_level.items())),
        }
