"""Change-freeze window: a purely temporal gate over governance mutations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..errors import ChangeFrozenError
from ..util import ensure_utc, isoformat_or_none


@dataclass(frozen=True)
class ChangeFreezeGate:
    active: bool = False
    until: datetime | None = None
    activated_at: datetime | None = None
    reason: str | None = None

    def is_frozen(self, now: datetime) -> bool:
        """True strictly within [activated_at, until); naive datetimes count as UTC."""
        if not self.active or self.until is None:
            return False
        now = ensure_utc(now)
        if self.activated_at is not None and now < ensure_utc(self.activated_at):
            return False
        return now < ensure_utc(self.until)

    def check(self, now: datetime, operation: str = "change") -> None:
        if self.is_frozen(now):
            raise ChangeFrozenError(self.until, operation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "until": isoformat_or_none(self.until),
            "activated_at": isoformat_or_none(self.activated_at),
            "reason": self.reason,
        }


def freeze_until(until: datetime, *, activated_at: datetime | None = None, reason: str | None = None) -> ChangeFreezeGate:
    return ChangeFreezeGate(
        active=True,
        until=ensure_utc(until),
        activated_at=ensure_utc(activated_at) if activated_at is not None else None,
        reason=reason,
    )


NO_FREEZE = ChangeFreezeGate()
