"""
Version ledger: append-only versions with exactly one current entry.

The ledger records what it is given. How a change type maps to the next
version number is the caller's decision (`bump_version` is offered as a
helper, never applied implicitly).

Invariant: a non-empty ledger has exactly one entry with current=True,
it is the most recently added, and the current pointer matches it.
`add_version` builds the whole new state before it is visible.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import VersionConsistencyError
from ..util import isoformat_or_none


class ChangeType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    HOTFIX = "hotfix"
    ENHANCEMENT = "enhancement"
    REFACTOR = "refactor"


_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class VersionNumber:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def parse(cls, text: str) -> VersionNumber:
        m = _VERSION_RE.match(text.strip())
        if not m:
            raise ValueError(f"Invalid version number: {text!r}")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)))


INITIAL_VERSION = VersionNumber(1, 0, 0)


def bump_version(current: VersionNumber | None, change_type: ChangeType) -> VersionNumber:
    """
    Next version number for a change type.

    MAJOR resets minor/patch, MINOR and ENHANCEMENT reset patch, PATCH and
    HOTFIX increment patch, REFACTOR keeps the numbers.
    """
    base = current or INITIAL_VERSION
    if change_type is ChangeType.MAJOR:
        return VersionNumber(base.major + 1, 0, 0)
    if change_type in (ChangeType.MINOR, ChangeType.ENHANCEMENT):
        return VersionNumber(base.major, base.minor + 1, 0)
    if change_type in (ChangeType.PATCH, ChangeType.HOTFIX):
        return VersionNumber(base.major, base.minor, base.patch + 1)
    return base


@dataclass(frozen=True)
class Version:
    version_id: str
    number: VersionNumber
    change_type: ChangeType
    created_at: datetime
    created_by: str
    description: str = ""
    current: bool = False
    stable: bool = True
    checksum: str | None = None

    @property
    def version_number(self) -> str:
        return str(self.number)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version_id": self.version_id,
            "version_number": self.version_number,
            "major": self.number.major,
            "minor": self.number.minor,
            "patch": self.number.patch,
            "change_type": self.change_type.value,
            "description": self.description,
            "created_at": isoformat_or_none(self.created_at),
            "created_by": self.created_by,
            "current": self.current,
            "stable": self.stable,
            "checksum": self.checksum,
        }


@dataclass(frozen=True)
class VersionLedger:
    versions: tuple[Version, ...] = ()
    current_number: VersionNumber | None = None

    def __post_init__(self) -> None:
        self.check()

    def check(self) -> None:
        """Raise VersionConsistencyError if the current-pointer invariant is broken."""
        if not self.versions:
            if self.current_number is not None:
                raise VersionConsistencyError("Empty version ledger has a current pointer")
            return
        current = [v for v in self.versions if v.current]
        if len(current) != 1:
            raise VersionConsistencyError(
                f"Version ledger has {len(current)} current entries (expected exactly 1)"
            )
        if current[0] is not self.versions[-1]:
            raise VersionConsistencyError("Current version is not the most recently added entry")
        if self.current_number != current[0].number:
            raise VersionConsistencyError(
                f"Current pointer {self.current_number} does not match current entry {current[0].number}"
            )

    @property
    def current(self) -> Version | None:
        return self.versions[-1] if self.versions else None

    @property
    def current_version(self) -> str | None:
        return str(self.current_number) if self.current_number else None

    @property
    def major(self) -> int | None:
        return self.current_number.major if self.current_number else None

    @property
    def minor(self) -> int | None:
        return self.current_number.minor if self.current_number else None

    @property
    def patch(self) -> int | None:
        return self.current_number.patch if self.current_number else None

    def add_version(self, version: Version) -> VersionLedger:
        """Return a ledger where `version` is appended and is the only current entry."""
        demoted = tuple(replace(v, current=False) if v.current else v for v in self.versions)
        return VersionLedger(
            versions=demoted + (replace(version, current=True),),
            current_number=version.number,
        )

    def find(self, version_number: str) -> Version | None:
        for v in self.versions:
            if v.version_number == version_number:
                return v
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_version": self.current_version,
            "versions": [v.to_dict() for v in self.versions],
        }
