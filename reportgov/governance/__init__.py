"""
Report lifecycle governance.

One GovernanceAggregate per report identity owns the lifecycle record,
approval workflow, version ledger, quality gate and freeze gate. All
mutations go through GovernanceService, which serializes them per report.
"""

from .stages import ALLOWED_TRANSITIONS, LifecycleStage, allowed_targets, can_transition, is_terminal, parse_stage
from .events import REPORT_DEPRECATED, STAGE_TRANSITIONED, AuditRecord, StageTransition
from .approval import ApprovalStep, StepStatus, Workflow, WorkflowStatus
from .versions import ChangeType, Version, VersionLedger, VersionNumber, bump_version
from .freeze import ChangeFreezeGate
from .quality import QualityCheck, QualityGate, QualityScore
from .changes import ChangeLog, ChangeRequest, ChangeStatus
from .releases import GovernancePolicy, Release, ReleaseStatus
from .lifecycle import DeprecationNotice, LifecycleRecord, LifecycleStateMachine
from .aggregate import GovernanceAggregate, GovernanceLevel, GovernanceOptions
from .repository import (
    AuditSink,
    InMemoryRepository,
    JsonlAuditSink,
    ListAuditSink,
    NullAuditSink,
    Repository,
    read_audit_log,
)
from .service import GovernanceService, Readiness

__all__ = [
    "ALLOWED_TRANSITIONS",
    "LifecycleStage",
    "allowed_targets",
    "can_transition",
    "is_terminal",
    "parse_stage",
    "REPORT_DEPRECATED",
    "STAGE_TRANSITIONED",
    "AuditRecord",
    "StageTransition",
    "ApprovalStep",
    "StepStatus",
    "Workflow",
    "WorkflowStatus",
    "ChangeType",
    "Version",
    "VersionLedger",
    "VersionNumber",
    "bump_version",
    "ChangeFreezeGate",
    "QualityCheck",
    "QualityGate",
    "QualityScore",
    "ChangeLog",
    "ChangeRequest",
    "ChangeStatus",
    "GovernancePolicy",
    "Release",
    "ReleaseStatus",
    "DeprecationNotice",
    "LifecycleRecord",
    "LifecycleStateMachine",
    "GovernanceAggregate",
    "GovernanceLevel",
    "GovernanceOptions",
    "AuditSink",
    "InMemoryRepository",
    "JsonlAuditSink",
    "ListAuditSink",
    "NullAuditSink",
    "Repository",
    "read_audit_log",
    "GovernanceService",
    "Readiness",
]
