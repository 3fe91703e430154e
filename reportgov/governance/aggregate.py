"""
Governance aggregate: everything governed for one report identity.

The aggregate owns the lifecycle record, approval workflow, version ledger,
quality gate, freeze gate, change log, release plan and policies. Each part
is an immutable value. Every operation computes all replacement parts
first and assigns them only after every check passed, so a raised error
leaves the aggregate unchanged.

The aggregate itself is not thread-safe; GovernanceService serializes
mutations per report identity.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import FeatureDisabledError, GovernanceError
from ..util import ensure_utc, isoformat_or_none, new_id
from .approval import ApprovalStep, Workflow, WorkflowStatus
from .changes import ChangeLog, ChangeRequest
from .events import StageTransition
from .freeze import NO_FREEZE, ChangeFreezeGate, freeze_until
from .lifecycle import LifecycleRecord, LifecycleStateMachine
from .quality import DEFAULT_QUALITY_THRESHOLD, QualityCheck, QualityGate, QualityScore
from .releases import GovernancePolicy, Release, ReleasePlan
from .stages import LifecycleStage
from .versions import INITIAL_VERSION, ChangeType, Version, VersionLedger, VersionNumber, bump_version


class GovernanceLevel(str, Enum):
    NONE = "none"
    BASIC = "basic"
    STANDARD = "standard"
    STRICT = "strict"
    ENTERPRISE = "enterprise"


@dataclass(frozen=True)
class GovernanceOptions:
    """Resolved once at registration; no tri-state flags."""

    level: GovernanceLevel = GovernanceLevel.STANDARD
    approval_required: bool = True
    version_control: bool = True
    quality_gate_on_publish: bool = True
    quality_threshold: float = DEFAULT_QUALITY_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "approval_required": self.approval_required,
            "version_control": self.version_control,
            "quality_gate_on_publish": self.quality_gate_on_publish,
            "quality_threshold": self.quality_threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GovernanceOptions:
        defaults = cls()
        level_raw = data.get("level", defaults.level.value)
        try:
            level = GovernanceLevel(str(level_raw).strip().lower())
        except ValueError:
            raise GovernanceError(f"Unknown governance level: {level_raw!r}") from None
        return cls(
            level=level,
            approval_required=bool(data.get("approval_required", defaults.approval_required)),
            version_control=bool(data.get("version_control", defaults.version_control)),
            quality_gate_on_publish=bool(data.get("quality_gate_on_publish", defaults.quality_gate_on_publish)),
            quality_threshold=float(data.get("quality_threshold", defaults.quality_threshold)),
        )


class GovernanceAggregate:
    def __init__(
        self,
        report_id: str,
        *,
        report_name: str = "",
        owner: str | None = None,
        options: GovernanceOptions | None = None,
        created_at: datetime | None = None,
        created_by: str | None = None,
    ):
        self.report_id = report_id
        self.report_name = report_name
        self.owner = owner
        self.options = options or GovernanceOptions()
        self.created_at = created_at
        self.created_by = created_by

        self.lifecycle = LifecycleRecord()
        self.workflow = Workflow()
        self.versions = VersionLedger()
        self.quality = QualityGate()
        self.freeze: ChangeFreezeGate = NO_FREEZE
        self.changes = ChangeLog()
        self.releases = ReleasePlan()
        self.policies: tuple[GovernancePolicy, ...] = ()

        self.last_modified_at: datetime | None = created_at
        self.last_modified_by: str | None = created_by
        self.revision = 0  # bumped on every successful mutation

        self._machine = LifecycleStateMachine(approval_required=self.options.approval_required)

    @classmethod
    def register(
        cls,
        report_id: str,
        actor: str,
        now: datetime,
        *,
        report_name: str = "",
        owner: str | None = None,
        options: GovernanceOptions | None = None,
    ) -> GovernanceAggregate:
        """New aggregate already in DRAFT, with an initial 1.0.0 version when versioning is on."""
        aggregate = cls(
            report_id,
            report_name=report_name,
            owner=owner or actor,
            options=options,
            created_at=now,
            created_by=actor,
        )
        aggregate.transition(LifecycleStage.DRAFT, actor, "registered", now=now)
        if aggregate.options.version_control:
            aggregate.add_version(
                Version(
                    version_id=new_id("ver"),
                    number=INITIAL_VERSION,
                    change_type=ChangeType.MAJOR,
                    created_at=now,
                    created_by=actor,
                    description="Initial version",
                ),
                actor=actor,
                now=now,
            )
        return aggregate

    # -- bookkeeping ----------------------------------------------------

    def _touch(self, actor: str | None, now: datetime | None) -> None:
        self.last_modified_at = now or self.last_modified_at
        self.last_modified_by = actor or self.last_modified_by
        self.revision += 1

    @property
    def current_stage(self) -> LifecycleStage | None:
        return self.lifecycle.current_stage

    @property
    def approval_status(self) -> WorkflowStatus:
        return self.workflow.status

    def is_frozen(self, now: datetime) -> bool:
        return self.freeze.is_frozen(now)

    def verify(self) -> None:
        """Re-check structural invariants (version pointer, history chain)."""
        self.versions.check()
        previous: LifecycleStage | None = None
        for t in self.lifecycle.history:
            if t.from_stage is not previous:
                raise GovernanceError(
                    f"Lifecycle history broken at {t.transition_id}: "
                    f"from={t.from_stage} but previous target={previous}"
                )
            previous = t.to_stage

    # -- lifecycle ------------------------------------------------------

    def check_transition(self, to_stage: LifecycleStage, now: datetime) -> None:
        """Raise the state machine's error for an illegal move; no state changes."""
        self._machine.check(self.lifecycle, to_stage, workflow=self.workflow, freeze=self.freeze, now=now)

    def can_transition(self, to_stage: LifecycleStage, now: datetime) -> bool:
        try:
            self.check_transition(to_stage, now)
        except GovernanceError:
            return False
        return True

    def transition(
        self,
        to_stage: LifecycleStage,
        actor: str,
        reason: str | None = None,
        *,
        now: datetime,
        replacement_report_id: str | None = None,
        retirement_date: datetime | None = None,
    ) -> StageTransition:
        record, transition = self._machine.transition(
            self.lifecycle,
            to_stage,
            actor,
            reason,
            workflow=self.workflow,
            freeze=self.freeze,
            now=now,
            replacement_report_id=replacement_report_id,
            retirement_date=retirement_date,
        )
        self.lifecycle = record
        self._touch(actor, now)
        return transition

    def deprecate(
        self,
        actor: str,
        reason: str | None,
        *,
        now: datetime,
        replacement_report_id: str | None = None,
        retirement_date: datetime | None = None,
    ) -> StageTransition:
        return self.transition(
            LifecycleStage.DEPRECATED,
            actor,
            reason,
            now=now,
            replacement_report_id=replacement_report_id,
            retirement_date=retirement_date,
        )

    # -- approval workflow ----------------------------------------------

    def add_approval_step(
        self,
        approver_id: str,
        *,
        now: datetime,
        name: str = "",
        approver_role: str | None = None,
        required: bool = True,
        timeout_days: int | None = None,
        actor: str | None = None,
    ) -> ApprovalStep:
        self.freeze.check(now, operation="approval step submission")
        workflow, step = self.workflow.add_step(
            approver_id,
            name=name,
            approver_role=approver_role,
            required=required,
            timeout_days=timeout_days,
            requested_at=now,
        )
        self.workflow = workflow
        self._touch(actor, now)
        return step

    def approve_step(self, step_id: str, actor: str, comment: str | None = None, *, now: datetime) -> WorkflowStatus:
        self.workflow = self.workflow.approve(step_id, actor, comment, now)
        self._touch(actor, now)
        return self.workflow.status

    def reject_step(self, step_id: str, actor: str, comment: str | None = None, *, now: datetime) -> WorkflowStatus:
        self.workflow = self.workflow.reject(step_id, actor, comment, now)
        self._touch(actor, now)
        return self.workflow.status

    def restart_workflow(self, actor: str, *, now: datetime) -> WorkflowStatus:
        self.freeze.check(now, operation="approval workflow restart")
        self.workflow = self.workflow.restart(now)
        self._touch(actor, now)
        return self.workflow.status

    # -- versions -------------------------------------------------------

    def _require_version_control(self) -> None:
        if not self.options.version_control:
            raise FeatureDisabledError(f"Version control is not enabled for report {self.report_id}")

    def add_version(self, version: Version, *, actor: str | None = None, now: datetime | None = None) -> Version:
        self._require_version_control()
        self.versions = self.versions.add_version(version)
        self._touch(actor or version.created_by, now or version.created_at)
        return self.versions.versions[-1]

    def create_version(
        self,
        change_type: ChangeType,
        actor: str,
        *,
        now: datetime,
        description: str = "",
        number: VersionNumber | None = None,
    ) -> Version:
        """Add a version numbered by `bump_version` unless the caller supplies `number`."""
        self._require_version_control()
        version = Version(
            version_id=new_id("ver"),
            number=number or bump_version(self.versions.current_number, change_type),
            change_type=change_type,
            created_at=now,
            created_by=actor,
            description=description,
        )
        return self.add_version(version, actor=actor, now=now)

    # -- quality --------------------------------------------------------

    def record_check(self, check: QualityCheck, *, now: datetime | None = None) -> QualityGate:
        self.quality = self.quality.record_check(check)
        self._touch(check.executed_by, now or check.executed_at)
        return self.quality

    def quality_score(self) -> QualityScore:
        return self.quality.score(self.options.quality_threshold)

    # -- freeze ---------------------------------------------------------

    def activate_freeze(self, until: datetime, actor: str, *, now: datetime, reason: str | None = None) -> ChangeFreezeGate:
        until, now = ensure_utc(until), ensure_utc(now)
        if until <= now:
            raise GovernanceError("Freeze end must be in the future")
        self.freeze = freeze_until(until, activated_at=now, reason=reason)
        self._touch(actor, now)
        return self.freeze

    def lift_freeze(self, actor: str, *, now: datetime) -> ChangeFreezeGate:
        self.freeze = NO_FREEZE
        self._touch(actor, now)
        return self.freeze

    # -- change requests ------------------------------------------------

    def submit_change(
        self,
        title: str,
        change_type: ChangeType,
        actor: str,
        *,
        now: datetime,
        description: str = "",
        impacts_production: bool = False,
        scheduled_for: datetime | None = None,
    ) -> ChangeRequest:
        self.freeze.check(now, operation="change request submission")
        request = ChangeRequest(
            change_id=new_id("chg"),
            title=title,
            change_type=change_type,
            requested_by=actor,
            requested_at=now,
            description=description,
            impacts_production=impacts_production,
            scheduled_for=scheduled_for,
        )
        self.changes = self.changes.submit(request)
        self._touch(actor, now)
        return request

    def approve_change(self, change_id: str, actor: str, *, now: datetime) -> ChangeRequest:
        self.freeze.check(now, operation="change request approval")
        self.changes = self.changes.approve(change_id, actor, now)
        self._touch(actor, now)
        return self.changes.get(change_id)

    def reject_change(self, change_id: str, actor: str, reason: str | None = None, *, now: datetime) -> ChangeRequest:
        self.changes = self.changes.reject(change_id, actor, reason, now)
        self._touch(actor, now)
        return self.changes.get(change_id)

    def implement_change(self, change_id: str, actor: str, *, now: datetime) -> ChangeRequest:
        self.changes = self.changes.mark_implemented(change_id, now)
        self._touch(actor, now)
        return self.changes.get(change_id)

    # -- policies and releases ------------------------------------------

    def add_policy(self, policy: GovernancePolicy, *, now: datetime) -> GovernancePolicy:
        if not policy.policy_id:
            policy = replace(policy, policy_id=new_id("pol"))
        if policy.created_at is None:
            policy = replace(policy, created_at=now)
        self.policies = self.policies + (policy,)
        self._touch(policy.created_by, now)
        return policy

    @property
    def active_policies(self) -> int:
        return sum(1 for p in self.policies if p.enabled)

    def create_release(
        self,
        name: str,
        version_number: str,
        actor: str,
        *,
        now: datetime,
        scheduled_at: datetime | None = None,
        notes: str = "",
    ) -> Release:
        release = Release(
            release_id=new_id("rel"),
            name=name,
            version_number=version_number,
            scheduled_at=scheduled_at,
            notes=notes,
            rollback_version=self.versions.current_version,
        )
        self.releases = self.releases.add(release)
        self._touch(actor, now)
        return release

    def mark_released(self, release_id: str, actor: str, *, now: datetime) -> Release:
        self.releases = self.releases.mark_released(release_id, actor, now)
        self._touch(actor, now)
        return self.releases.get(release_id)

    # -- serialization --------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_id": self.report_id,
            "report_name": self.report_name,
            "owner": self.owner,
            "options": self.options.to_dict(),
            "created_at": isoformat_or_none(self.created_at),
            "created_by": self.created_by,
            "last_modified_at": isoformat_or_none(self.last_modified_at),
            "last_modified_by": self.last_modified_by,
            "revision": self.revision,
            "lifecycle": self.lifecycle.to_dict(),
            "workflow": self.workflow.to_dict(),
            "versions": self.versions.to_dict(),
            "quality": self.quality.to_dict(),
            "quality_score": self.quality_score().to_dict(),
            "freeze": self.freeze.to_dict(),
            "changes": self.changes.to_dict(),
            "releases": self.releases.to_dict(),
            "policies": [p.to_dict() for p in self.policies],
        }
