"""
Approval workflow: an ordered list of steps and a derived aggregate status.

Aggregate status is never stored; it is recomputed from the steps:

- REJECTED    any step (required or not) has been rejected
- APPROVED    every required step is approved (and the workflow has steps)
- IN_PROGRESS at least one decision recorded, approval not yet complete
- PENDING     no steps, or no decisions yet

Decisions are final, so rejection is sticky: approving other steps later
does not clear it. `restart()` is the explicit way back.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import StepAlreadyDecidedError, UnknownEntityError
from ..util import isoformat_or_none, new_id


class StepStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ApprovalStep:
    step_id: str
    order: int
    approver_id: str
    name: str = ""
    approver_role: str | None = None
    required: bool = True
    status: StepStatus = StepStatus.PENDING
    requested_at: datetime | None = None
    responded_at: datetime | None = None
    decided_by: str | None = None
    comment: str | None = None
    timeout_days: int | None = None

    @property
    def decided(self) -> bool:
        return self.status is not StepStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "order": self.order,
            "name": self.name,
            "approver_id": self.approver_id,
            "approver_role": self.approver_role,
            "required": self.required,
            "status": self.status.value,
            "requested_at": isoformat_or_none(self.requested_at),
            "responded_at": isoformat_or_none(self.responded_at),
            "decided_by": self.decided_by,
            "comment": self.comment,
            "timeout_days": self.timeout_days,
        }


@dataclass(frozen=True)
class Workflow:
    """Ordered approval steps. Operations return a new Workflow."""

    steps: tuple[ApprovalStep, ...] = ()

    @property
    def status(self) -> WorkflowStatus:
        if any(s.status is StepStatus.REJECTED for s in self.steps):
            return WorkflowStatus.REJECTED
        if not self.steps:
            return WorkflowStatus.PENDING
        if all(s.status is StepStatus.APPROVED for s in self.steps if s.required):
            return WorkflowStatus.APPROVED
        if any(s.decided for s in self.steps):
            return WorkflowStatus.IN_PROGRESS
        return WorkflowStatus.PENDING

    @property
    def is_approved(self) -> bool:
        return self.status is WorkflowStatus.APPROVED

    @property
    def completed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status is StepStatus.APPROVED)

    @property
    def current_step(self) -> ApprovalStep | None:
        """Lowest-ordered step still awaiting a decision."""
        pending = [s for s in self.steps if not s.decided]
        return min(pending, key=lambda s: s.order) if pending else None

    def step(self, step_id: str) -> ApprovalStep:
        for s in self.steps:
            if s.step_id == step_id:
                return s
        raise UnknownEntityError("Approval step", step_id)

    def add_step(
        self,
        approver_id: str,
        *,
        name: str = "",
        approver_role: str | None = None,
        required: bool = True,
        timeout_days: int | None = None,
        requested_at: datetime | None = None,
        step_id: str | None = None,
    ) -> tuple[Workflow, ApprovalStep]:
        order = max((s.order for s in self.steps), default=0) + 1
        step = ApprovalStep(
            step_id=step_id or new_id("step"),
            order=order,
            approver_id=approver_id,
            name=name,
            approver_role=approver_role,
            required=required,
            requested_at=requested_at,
            timeout_days=timeout_days,
        )
        return Workflow(self.steps + (step,)), step

    def _decide(
        self,
        step_id: str,
        status: StepStatus,
        actor: str,
        comment: str | None,
        at: datetime,
    ) -> Workflow:
        target = self.step(step_id)
        if target.decided:
            raise StepAlreadyDecidedError(
                f"Approval step {step_id} already {target.status.value} by {target.decided_by}"
            )
        decided = replace(target, status=status, responded_at=at, decided_by=actor, comment=comment)
        return Workflow(tuple(decided if s.step_id == step_id else s for s in self.steps))

    def approve(self, step_id: str, actor: str, comment: str | None, at: datetime) -> Workflow:
        return self._decide(step_id, StepStatus.APPROVED, actor, comment, at)

    def reject(self, step_id: str, actor: str, comment: str | None, at: datetime) -> Workflow:
        return self._decide(step_id, StepStatus.REJECTED, actor, comment, at)

    def restart(self, at: datetime) -> Workflow:
        """Re-open every step as PENDING, keeping approvers and order."""
        return Workflow(tuple(
            replace(s, status=StepStatus.PENDING, requested_at=at, responded_at=None, decided_by=None, comment=None)
            for s in self.steps
        ))

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "total_steps": len(self.steps),
            "completed_steps": self.completed_steps,
            "steps": [s.to_dict() for s in sorted(self.steps, key=lambda s: s.order)],
        }
