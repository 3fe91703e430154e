"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest

from reportgov.clock import FixedClock
from reportgov.governance.repository import InMemoryRepository, ListAuditSink
from reportgov.governance.service import GovernanceService
from reportgov.governance.stages import LifecycleStage


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now: datetime) -> FixedClock:
    """Clock pinned to Monday 2025-01-06 09:00 UTC."""
    return FixedClock(now)


@pytest.fixture
def audit() -> ListAuditSink:
    return ListAuditSink()


@pytest.fixture
def service(clock: FixedClock, audit: ListAuditSink) -> GovernanceService:
    """Service over an empty in-memory repository."""
    return GovernanceService(InMemoryRepository(), audit=audit, clock=clock)


@pytest.fixture
def approved_report(service: GovernanceService) -> str:
    """A registered report in REVIEW whose single required step is approved."""
    service.register("rpt-1", "human:alice", report_name="Quarterly sales")
    step = service.add_approval_step("rpt-1", "human:bob", name="Manager review")
    service.transition("rpt-1", LifecycleStage.REVIEW, "human:alice", "ready for review")
    service.approve_step("rpt-1", step.step_id, "human:bob", "looks good")
    return "rpt-1"
