"""Change requests and their log. Submission and approval are subject to the freeze gate."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import GovernanceError, UnknownEntityError
from ..util import isoformat_or_none
from .versions import ChangeType


class ChangeStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


@dataclass(frozen=True)
class ChangeRequest:
    change_id: str
    title: str
    change_type: ChangeType
    requested_by: str
    requested_at: datetime
    description: str = ""
    status: ChangeStatus = ChangeStatus.PENDING
    impacts_production: bool = False
    decided_by: str | None = None
    decided_at: datetime | None = None
    rejection_reason: str | None = None
    scheduled_for: datetime | None = None
    implemented_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "change_id": self.change_id,
            "title": self.title,
            "description": self.description,
            "change_type": self.change_type.value,
            "requested_by": self.requested_by,
            "requested_at": isoformat_or_none(self.requested_at),
            "status": self.status.value,
            "impacts_production": self.impacts_production,
            "decided_by": self.decided_by,
            "decided_at": isoformat_or_none(self.decided_at),
            "rejection_reason": self.rejection_reason,
            "scheduled_for": isoformat_or_none(self.scheduled_for),
            "implemented_at": isoformat_or_none(self.implemented_at),
        }


@dataclass(frozen=True)
class ChangeLog:
    requests: tuple[ChangeRequest, ...] = ()

    def get(self, change_id: str) -> ChangeRequest:
        for r in self.requests:
            if r.change_id == change_id:
                return r
        raise UnknownEntityError("Change request", change_id)

    def _count(self, status: ChangeStatus) -> int:
        return sum(1 for r in self.requests if r.status is status)

    @property
    def pending(self) -> int:
        return self._count(ChangeStatus.PENDING)

    @property
    def approved(self) -> int:
        # Implemented changes were approved first.
        return self._count(ChangeStatus.APPROVED) + self._count(ChangeStatus.IMPLEMENTED)

    @property
    def rejected(self) -> int:
        return self._count(ChangeStatus.REJECTED)

    def submit(self, request: ChangeRequest) -> ChangeLog:
        return ChangeLog(self.requests + (request,))

    def _replace(self, updated: ChangeRequest) -> ChangeLog:
        return ChangeLog(tuple(updated if r.change_id == updated.change_id else r for r in self.requests))

    def _require_pending(self, request: ChangeRequest) -> None:
        if request.status is not ChangeStatus.PENDING:
            raise GovernanceError(f"Change request {request.change_id} is already {request.status.value}")

    def approve(self, change_id: str, actor: str, at: datetime) -> ChangeLog:
        request = self.get(change_id)
        self._require_pending(request)
        return self._replace(replace(request, status=ChangeStatus.APPROVED, decided_by=actor, decided_at=at))

    def reject(self, change_id: str, actor: str, reason: str | None, at: datetime) -> ChangeLog:
        request = self.get(change_id)
        self._require_pending(request)
        return self._replace(
            replace(request, status=ChangeStatus.REJECTED, decided_by=actor, decided_at=at, rejection_reason=reason)
        )

    def mark_implemented(self, change_id: str, at: datetime) -> ChangeLog:
        request = self.get(change_id)
        if request.status is not ChangeStatus.APPROVED:
            raise GovernanceError(f"Change request {change_id} must be approved before implementation")
        return self._replace(replace(request, status=ChangeStatus.IMPLEMENTED, implemented_at=at))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": len(self.requests),
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "requests": [r.to_dict() for r in self.requests],
        }
