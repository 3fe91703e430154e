from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from reportgov.errors import ApprovalRequiredError, ChangeFrozenError, InvalidTransitionError
from reportgov.governance.aggregate import GovernanceAggregate, GovernanceOptions
from reportgov.governance.approval import Workflow
from reportgov.governance.freeze import NO_FREEZE, freeze_until
from reportgov.governance.lifecycle import LifecycleRecord, LifecycleStateMachine
from reportgov.governance.stages import (
    ALLOWED_TRANSITIONS,
    LifecycleStage,
    allowed_targets,
    can_transition,
    parse_stage,
)

T0 = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

S = LifecycleStage


LEGAL_PAIRS = {
    (None, S.DRAFT),
    (S.DRAFT, S.REVIEW),
    (S.REVIEW, S.APPROVED),
    (S.REVIEW, S.DRAFT),
    (S.APPROVED, S.PUBLISHED),
    (S.APPROVED, S.REVIEW),
    (S.PUBLISHED, S.DEPRECATED),
    (S.PUBLISHED, S.ARCHIVED),
    (S.DEPRECATED, S.ARCHIVED),
    (S.DEPRECATED, S.RETIRED),
    (S.ARCHIVED, S.RETIRED),
    (S.ARCHIVED, S.PUBLISHED),
}


def _approved_workflow() -> Workflow:
    workflow, step = Workflow().add_step("human:bob")
    return workflow.approve(step.step_id, "human:bob", None, T0)


def test_transition_table_is_exhaustive() -> None:
    assert len(LEGAL_PAIRS) == 12
    for src in [None, *LifecycleStage]:
        for dst in LifecycleStage:
            assert can_transition(src, dst) == ((src, dst) in LEGAL_PAIRS), (src, dst)
    table = {(src, dst) for src, targets in ALLOWED_TRANSITIONS.items() for dst in targets}
    assert table == LEGAL_PAIRS


def test_only_draft_is_a_legal_first_stage() -> None:
    assert allowed_targets(None) == [S.DRAFT]
    assert allowed_targets(S.RETIRED) == []
    assert allowed_targets(S.ARCHIVED) == [S.PUBLISHED, S.RETIRED]


def test_parse_stage() -> None:
    assert parse_stage(" Published ") is S.PUBLISHED
    with pytest.raises(ValueError, match="Unknown lifecycle stage"):
        parse_stage("live")


def test_record_projects_from_history() -> None:
    machine = LifecycleStateMachine()
    record = LifecycleRecord()
    assert record.current_stage is None

    record, first = machine.transition(record, S.DRAFT, "human:alice", "created", workflow=Workflow(), freeze=NO_FREEZE, now=T0)
    later = T0 + timedelta(hours=2)
    record, second = machine.transition(record, S.REVIEW, "human:carol", None, workflow=Workflow(), freeze=NO_FREEZE, now=later)

    assert first.from_stage is None
    assert record.current_stage is S.REVIEW
    assert record.previous_stage is S.DRAFT
    assert record.stage_changed_at == later
    assert record.stage_changed_by == "human:carol"
    assert record.history == (first, second)
    assert record.entered_at(S.DRAFT) == T0
    assert record.time_in_current_stage(later + timedelta(minutes=1)) == 60.0


def test_transition_returns_new_record_and_leaves_input_alone() -> None:
    machine = LifecycleStateMachine()
    empty = LifecycleRecord()

    record, _ = machine.transition(empty, S.DRAFT, "system", None, workflow=Workflow(), freeze=NO_FREEZE, now=T0)

    assert empty.history == ()
    assert len(record.history) == 1


def test_approved_requires_approved_workflow() -> None:
    machine = LifecycleStateMachine()
    record = LifecycleRecord()
    for stage in (S.DRAFT, S.REVIEW):
        record, _ = machine.transition(record, stage, "system", None, workflow=Workflow(), freeze=NO_FREEZE, now=T0)

    with pytest.raises(ApprovalRequiredError, match="status=pending"):
        machine.transition(record, S.APPROVED, "system", None, workflow=Workflow(), freeze=NO_FREEZE, now=T0)

    record, _ = machine.transition(record, S.APPROVED, "system", None, workflow=_approved_workflow(), freeze=NO_FREEZE, now=T0)
    assert record.current_stage is S.APPROVED


def test_approval_can_be_switched_off() -> None:
    machine = LifecycleStateMachine(approval_required=False)
    record = LifecycleRecord()
    for stage in (S.DRAFT, S.REVIEW, S.APPROVED):
        record, _ = machine.transition(record, stage, "system", None, workflow=Workflow(), freeze=NO_FREEZE, now=T0)
    assert record.current_stage is S.APPROVED


def test_table_is_checked_before_approval_and_freeze() -> None:
    machine = LifecycleStateMachine()
    record, _ = machine.transition(LifecycleRecord(), S.DRAFT, "system", None, workflow=Workflow(), freeze=NO_FREEZE, now=T0)
    frozen = freeze_until(T0 + timedelta(days=1), activated_at=T0)

    with pytest.raises(InvalidTransitionError, match="Cannot transition from draft to approved"):
        machine.transition(record, S.APPROVED, "system", None, workflow=Workflow(), freeze=frozen, now=T0)


def test_freeze_blocks_every_transition() -> None:
    machine = LifecycleStateMachine()
    frozen = freeze_until(T0 + timedelta(days=1), activated_at=T0)

    with pytest.raises(ChangeFrozenError, match="transition to draft"):
        machine.transition(LifecycleRecord(), S.DRAFT, "system", None, workflow=Workflow(), freeze=frozen, now=T0)

    record, _ = machine.transition(
        LifecycleRecord(), S.DRAFT, "system", None, workflow=Workflow(), freeze=frozen, now=T0 + timedelta(days=1)
    )
    assert record.current_stage is S.DRAFT


def _aggregate(**options) -> GovernanceAggregate:
    return GovernanceAggregate.register("rpt-1", "human:alice", T0, options=GovernanceOptions(**options))


def test_register_starts_in_draft_with_initial_version() -> None:
    aggregate = _aggregate()

    assert aggregate.current_stage is S.DRAFT
    assert len(aggregate.lifecycle.history) == 1
    assert aggregate.versions.current_version == "1.0.0"


def test_register_without_version_control() -> None:
    aggregate = _aggregate(version_control=False)
    assert aggregate.versions.current is None


def test_full_lifecycle_to_retirement() -> None:
    aggregate = _aggregate()
    step = aggregate.add_approval_step("human:bob", now=T0)
    aggregate.transition(S.REVIEW, "human:alice", now=T0)
    aggregate.approve_step(step.step_id, "human:bob", now=T0)

    for stage in (S.APPROVED, S.PUBLISHED):
        aggregate.transition(stage, "human:alice", now=T0)
    retire_on = T0 + timedelta(days=90)
    transition = aggregate.deprecate(
        "human:alice", "superseded", now=T0, replacement_report_id="rpt-2", retirement_date=retire_on
    )
    aggregate.transition(S.RETIRED, "human:alice", now=retire_on)

    assert [t.to_stage for t in aggregate.lifecycle.history] == [
        S.DRAFT, S.REVIEW, S.APPROVED, S.PUBLISHED, S.DEPRECATED, S.RETIRED,
    ]
    assert aggregate.lifecycle.is_terminal
    notice = aggregate.lifecycle.deprecation
    assert notice is not None
    assert notice.replacement_report_id == "rpt-2"
    assert notice.retirement_date == retire_on
    assert transition.metadata["deprecation"]["reason"] == "superseded"
    with pytest.raises(TypeError):
        transition.metadata["deprecation"]["reason"] = "edited"
    assert transition.to_dict()["metadata"]["deprecation"]["reason"] == "superseded"
    aggregate.verify()


def test_draft_to_published_is_illegal_and_leaves_state_unchanged() -> None:
    aggregate = _aggregate()
    revision = aggregate.revision

    with pytest.raises(InvalidTransitionError):
        aggregate.transition(S.PUBLISHED, "human:alice", now=T0)

    assert aggregate.current_stage is S.DRAFT
    assert len(aggregate.lifecycle.history) == 1
    assert aggregate.revision == revision


def test_retired_is_terminal() -> None:
    aggregate = _aggregate(approval_required=False)
    for stage in (S.REVIEW, S.APPROVED, S.PUBLISHED, S.ARCHIVED, S.RETIRED):
        aggregate.transition(stage, "system", now=T0)

    for stage in LifecycleStage:
        assert not aggregate.can_transition(stage, T0)
        with pytest.raises(InvalidTransitionError):
            aggregate.transition(stage, "system", now=T0)


def test_archived_report_can_be_republished() -> None:
    aggregate = _aggregate(approval_required=False)
    for stage in (S.REVIEW, S.APPROVED, S.PUBLISHED, S.ARCHIVED, S.PUBLISHED):
        aggregate.transition(stage, "system", now=T0)
    assert aggregate.current_stage is S.PUBLISHED
    assert aggregate.lifecycle.previous_stage is S.ARCHIVED
