"""Releases and governance policies attached to a report."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import GovernanceError, UnknownEntityError
from ..util import isoformat_or_none


class ReleaseStatus(str, Enum):
    PLANNING = "planning"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    RELEASED = "released"
    ROLLED_BACK = "rolled_back"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Release:
    release_id: str
    name: str
    version_number: str
    status: ReleaseStatus = ReleaseStatus.PLANNING
    scheduled_at: datetime | None = None
    released_at: datetime | None = None
    released_by: str | None = None
    notes: str = ""
    rollback_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "release_id": self.release_id,
            "name": self.name,
            "version_number": self.version_number,
            "status": self.status.value,
            "scheduled_at": isoformat_or_none(self.scheduled_at),
            "released_at": isoformat_or_none(self.released_at),
            "released_by": self.released_by,
            "notes": self.notes,
            "rollback_version": self.rollback_version,
        }


@dataclass(frozen=True)
class ReleasePlan:
    releases: tuple[Release, ...] = ()
    current_release_id: str | None = None

    def get(self, release_id: str) -> Release:
        for r in self.releases:
            if r.release_id == release_id:
                return r
        raise UnknownEntityError("Release", release_id)

    @property
    def current(self) -> Release | None:
        return self.get(self.current_release_id) if self.current_release_id else None

    @property
    def next_release_date(self) -> datetime | None:
        upcoming = [
            r.scheduled_at for r in self.releases
            if r.scheduled_at is not None and r.status in (ReleaseStatus.PLANNING, ReleaseStatus.SCHEDULED)
        ]
        return min(upcoming) if upcoming else None

    def add(self, release: Release) -> ReleasePlan:
        return replace(self, releases=self.releases + (release,))

    def mark_released(self, release_id: str, actor: str, at: datetime) -> ReleasePlan:
        release = self.get(release_id)
        if release.status in (ReleaseStatus.RELEASED, ReleaseStatus.CANCELLED, ReleaseStatus.ROLLED_BACK):
            raise GovernanceError(f"Release {release_id} is already {release.status.value}")
        released = replace(release, status=ReleaseStatus.RELEASED, released_at=at, released_by=actor)
        return ReleasePlan(
            releases=tuple(released if r.release_id == release_id else r for r in self.releases),
            current_release_id=release_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_release_id": self.current_release_id,
            "next_release_date": isoformat_or_none(self.next_release_date),
            "releases": [r.to_dict() for r in self.releases],
        }


DEFAULT_POLICY_PRIORITY = 100


@dataclass(frozen=True)
class GovernancePolicy:
    policy_id: str
    name: str
    policy_type: str = "custom"
    description: str = ""
    enabled: bool = True
    mandatory: bool = False
    priority: int = DEFAULT_POLICY_PRIORITY
    effective_from: datetime | None = None
    effective_until: datetime | None = None
    created_at: datetime | None = None
    created_by: str | None = None

    def is_effective(self, now: datetime) -> bool:
        if not self.enabled:
            return False
        if self.effective_from is not None and now < self.effective_from:
            return False
        if self.effective_until is not None and now >= self.effective_until:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "name": self.name,
            "policy_type": self.policy_type,
            "description": self.description,
            "enabled": self.enabled,
            "mandatory": self.mandatory,
            "priority": self.priority,
            "effective_from": isoformat_or_none(self.effective_from),
            "effective_until": isoformat_or_none(self.effective_until),
            "created_at": isoformat_or_none(self.created_at),
            "created_by": self.created_by,
        }
