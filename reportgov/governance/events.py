"""
Immutable governance events.

A StageTransition is the atomic unit of lifecycle history: it is appended
once and never modified. The current stage is always computed from the
last one.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from .stages import LifecycleStage

# Event type constants (used by audit sinks)
STAGE_TRANSITIONED = "stage.transitioned"
REPORT_DEPRECATED = "report.deprecated"

EVENT_TYPES = frozenset({
    STAGE_TRANSITIONED,
    REPORT_DEPRECATED,
})


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class StageTransition:
    """One recorded lifecycle move."""

    transition_id: str
    from_stage: LifecycleStage | None  # None only for the entry into DRAFT
    to_stage: LifecycleStage
    timestamp: datetime
    actor: str  # "human:alice", "service:publisher", "system"
    reason: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    def __deepcopy__(self, memo: dict[int, Any]) -> StageTransition:
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "transition_id": self.transition_id,
            "from_stage": self.from_stage.value if self.from_stage else None,
            "to_stage": self.to_stage.value,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
        }
        if self.reason is not None:
            result["reason"] = self.reason
        if self.metadata:
            result["metadata"] = _thaw(self.metadata)
        return result

    def to_json(self) -> str:
        """Serialize to JSON string (single line)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StageTransition:
        from_stage = data.get("from_stage")
        return cls(
            transition_id=data["transition_id"],
            from_stage=LifecycleStage(from_stage) if from_stage else None,
            to_stage=LifecycleStage(data["to_stage"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            actor=data["actor"],
            reason=data.get("reason"),
            metadata=data.get("metadata", {}),
        )

    @classmethod
    def from_json(cls, line: str) -> StageTransition:
        return cls.from_dict(json.loads(line))


@dataclass(frozen=True)
class AuditRecord:
    """
    Envelope handed to audit sinks after a successful transition.

    One line per record in a JSONL audit log.
    """

    event_type: str
    report_id: str
    transition: StageTransition

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid event_type: {self.event_type}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "report_id": self.report_id,
            "transition": self.transition.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditRecord:
        return cls(
            event_type=data["event_type"],
            report_id=data["report_id"],
            transition=StageTransition.from_dict(data["transition"]),
        )

    @classmethod
    def from_json(cls, line: str) -> AuditRecord:
        return cls.from_dict(json.loads(line))
