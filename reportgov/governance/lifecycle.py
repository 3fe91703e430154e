"""
Lifecycle state machine.

The record is a projection of its history: current stage, previous stage
and the stage-changed stamp are all read from the last StageTransition, so
"current stage equals the target of the last entry" cannot drift.

Transition checks, in order:
1. transition table            -> InvalidTransitionError
2. APPROVED needs an approved workflow (unless approval is switched off)
                               -> ApprovalRequiredError
3. active change freeze        -> ChangeFrozenError

Every transition counts as a change. Nothing is dispatched from here;
audit and notification happen in the caller after success.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..errors import ApprovalRequiredError, InvalidTransitionError
from ..util import isoformat_or_none, new_id
from .approval import Workflow
from .events import StageTransition
from .freeze import ChangeFreezeGate
from .stages import LifecycleStage, can_transition, is_terminal


@dataclass(frozen=True)
class DeprecationNotice:
    deprecated_by: str
    deprecated_at: datetime
    reason: str | None = None
    replacement_report_id: str | None = None
    retirement_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "deprecated_by": self.deprecated_by,
            "deprecated_at": isoformat_or_none(self.deprecated_at),
            "reason": self.reason,
            "replacement_report_id": self.replacement_report_id,
            "retirement_date": isoformat_or_none(self.retirement_date),
        }


@dataclass(frozen=True)
class LifecycleRecord:
    history: tuple[StageTransition, ...] = ()
    deprecation: DeprecationNotice | None = None

    @property
    def current_stage(self) -> LifecycleStage | None:
        return self.history[-1].to_stage if self.history else None

    @property
    def previous_stage(self) -> LifecycleStage | None:
        return self.history[-1].from_stage if self.history else None

    @property
    def stage_changed_at(self) -> datetime | None:
        return self.history[-1].timestamp if self.history else None

    @property
    def stage_changed_by(self) -> str | None:
        return self.history[-1].actor if self.history else None

    @property
    def deprecated(self) -> bool:
        return self.deprecation is not None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.current_stage)

    def entered_at(self, stage: LifecycleStage) -> datetime | None:
        """Most recent time the record entered `stage`."""
        for t in reversed(self.history):
            if t.to_stage is stage:
                return t.timestamp
        return None

    def time_in_current_stage(self, now: datetime) -> float | None:
        """Seconds spent in the current stage."""
        changed = self.stage_changed_at
        return (now - changed).total_seconds() if changed else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_stage": self.current_stage.value if self.current_stage else None,
            "previous_stage": self.previous_stage.value if self.previous_stage else None,
            "stage_changed_at": isoformat_or_none(self.stage_changed_at),
            "stage_changed_by": self.stage_changed_by,
            "deprecation": self.deprecation.to_dict() if self.deprecation else None,
            "history": [t.to_dict() for t in self.history],
        }


class LifecycleStateMachine:
    """Validates and applies stage transitions to a LifecycleRecord."""

    def __init__(self, *, approval_required: bool = True):
        self.approval_required = approval_required

    def check(
        self,
        record: LifecycleRecord,
        to_stage: LifecycleStage,
        *,
        workflow: Workflow,
        freeze: ChangeFreezeGate,
        now: datetime,
    ) -> None:
        """Raise the first failing rule; return None if the move is allowed."""
        if not can_transition(record.current_stage, to_stage):
            raise InvalidTransitionError(record.current_stage, to_stage)
        if to_stage is LifecycleStage.APPROVED and self.approval_required and not workflow.is_approved:
            raise ApprovalRequiredError(workflow.status)
        freeze.check(now, operation=f"transition to {to_stage.value}")

    def transition(
        self,
        record: LifecycleRecord,
        to_stage: LifecycleStage,
        actor: str,
        reason: str | None,
        *,
        workflow: Workflow,
        freeze: ChangeFreezeGate,
        now: datetime,
        replacement_report_id: str | None = None,
        retirement_date: datetime | None = None,
    ) -> tuple[LifecycleRecord, StageTransition]:
        """Return the new record and the appended transition; `record` is untouched."""
        self.check(record, to_stage, workflow=workflow, freeze=freeze, now=now)

        metadata: dict[str, Any] = {}
        deprecation = record.deprecation
        if to_stage is LifecycleStage.DEPRECATED:
            deprecation = DeprecationNotice(
                deprecated_by=actor,
                deprecated_at=now,
                reason=reason,
                replacement_report_id=replacement_report_id,
                retirement_date=retirement_date,
            )
            metadata["deprecation"] = deprecation.to_dict()

        transition = StageTransition(
            transition_id=new_id("tr"),
            from_stage=record.current_stage,
            to_stage=to_stage,
            timestamp=now,
            actor=actor,
            reason=reason,
            metadata=metadata,
        )
        return LifecycleRecord(history=record.history + (transition,), deprecation=deprecation), transition
