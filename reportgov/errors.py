"""
Error hierarchy for schedule and governance operations.

Every error is local and synchronous. None of them is retried inside the
engine: they describe policy violations, not transient failures. An
operation that raises leaves its aggregate exactly as it was.
"""

from __future__ import annotations


class GovernanceError(ValueError):
    """Base class for all reportgov errors."""

    code = "GOVERNANCE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidTransitionError(GovernanceError):
    """Illegal lifecycle stage move."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_stage: object, to_stage: object):
        source = getattr(from_stage, "value", None) or "(none)"
        target = getattr(to_stage, "value", to_stage)
        super().__init__(f"Cannot transition from {source} to {target}")
        self.from_stage = from_stage
        self.to_stage = to_stage


class ApprovalRequiredError(GovernanceError):
    """Advance to APPROVED attempted without a fully approved workflow."""

    code = "APPROVAL_REQUIRED"

    def __init__(self, workflow_status: object):
        status = getattr(workflow_status, "value", workflow_status)
        super().__init__(f"Approval workflow must be approved (status={status})")
        self.workflow_status = workflow_status


class ChangeFrozenError(GovernanceError):
    """Mutation attempted while a change freeze is active."""

    code = "CHANGE_FROZEN"

    def __init__(self, until: object, operation: str = "change"):
        until_text = until.isoformat() if hasattr(until, "isoformat") else str(until)
        super().__init__(f"Changes are frozen until {until_text} ({operation} refused)")
        self.until = until
        self.operation = operation


class MalformedScheduleError(GovernanceError):
    """Schedule definition rejected at creation time."""

    code = "MALFORMED_SCHEDULE"

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class VersionConsistencyError(GovernanceError):
    """
    Version ledger found with zero or several current entries.

    This indicates a broken atomic-update guarantee and must be treated as fatal.
    """

    code = "VERSION_CONSISTENCY"


class UnknownEntityError(GovernanceError):
    """Referenced report, schedule, step, change request or release does not exist."""

    code = "UNKNOWN_ENTITY"

    def __init__(self, kind: str, entity_id: object):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class StepAlreadyDecidedError(GovernanceError):
    """Approval decisions are final; a decided step cannot be decided again."""

    code = "STEP_ALREADY_DECIDED"


class QualityGateError(GovernanceError):
    """Publication refused because recorded quality checks failed."""

    code = "QUALITY_GATE_FAILED"


class FeatureDisabledError(GovernanceError):
    """Operation switched off by the aggregate's governance options."""

    code = "FEATURE_DISABLED"
