"""
Report scheduling and governance engine.

Two independent aggregates:

- Schedules: decide, for a calendar date, whether a recurring report job is due.
- Governance: decide whether a report artifact may move through
  draft → review → approval → publication → deprecation → retirement.

Per the governance invariants:
- Lifecycle history is append-only; the current stage is always the target
  of the last recorded transition.
- Exactly one version in a ledger is current.
- Approval is an act: APPROVED is only reachable through a fully approved workflow.
- Freeze windows block every governance mutation they cover.
"""

__version__ = "0.1.0"

from .errors import (
    ApprovalRequiredError,
    ChangeFrozenError,
    GovernanceError,
    InvalidTransitionError,
    MalformedScheduleError,
    VersionConsistencyError,
)
from .schedule.evaluator import is_due_today, next_due_date
from .schedule.spec import Frequency, ScheduleSpec, ScheduleStatus, Weekday
from .governance.stages import LifecycleStage, can_transition
from .governance.service import GovernanceService

__all__ = [
    "__version__",
    # Errors
    "GovernanceError",
    "InvalidTransitionError",
    "ApprovalRequiredError",
    "ChangeFrozenError",
    "MalformedScheduleError",
    "VersionConsistencyError",
    # Schedules
    "Frequency",
    "ScheduleSpec",
    "ScheduleStatus",
    "Weekday",
    "is_due_today",
    "next_due_date",
    # Governance
    "LifecycleStage",
    "can_transition",
    "GovernanceService",
]
