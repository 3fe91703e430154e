"""
Lifecycle stages and the exhaustive transition table.

There is no implicit initial stage: a record with no history is pre-DRAFT,
and the only legal first move is into DRAFT. RETIRED is terminal.
"""

from __future__ import annotations

from enum import Enum


class LifecycleStage(str, Enum):
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    PUBLISHED = "published"
    DEPRECATED = "deprecated"
    ARCHIVED = "archived"
    RETIRED = "retired"


# from-stage (None = no history) -> allowed target stages
ALLOWED_TRANSITIONS: dict[LifecycleStage | None, frozenset[LifecycleStage]] = {
    None: frozenset({LifecycleStage.DRAFT}),
    LifecycleStage.DRAFT: frozenset({LifecycleStage.REVIEW}),
    LifecycleStage.REVIEW: frozenset({LifecycleStage.APPROVED, LifecycleStage.DRAFT}),
    LifecycleStage.APPROVED: frozenset({LifecycleStage.PUBLISHED, LifecycleStage.REVIEW}),
    LifecycleStage.PUBLISHED: frozenset({LifecycleStage.DEPRECATED, LifecycleStage.ARCHIVED}),
    LifecycleStage.DEPRECATED: frozenset({LifecycleStage.ARCHIVED, LifecycleStage.RETIRED}),
    LifecycleStage.ARCHIVED: frozenset({LifecycleStage.RETIRED, LifecycleStage.PUBLISHED}),
    LifecycleStage.RETIRED: frozenset(),
}

TERMINAL_STAGES = frozenset({LifecycleStage.RETIRED})


def can_transition(from_stage: LifecycleStage | None, to_stage: LifecycleStage) -> bool:
    """Check the transition table; any pair not listed is illegal."""
    return to_stage in ALLOWED_TRANSITIONS.get(from_stage, frozenset())


def allowed_targets(from_stage: LifecycleStage | None) -> list[LifecycleStage]:
    """Allowed targets in declaration order (stable for display)."""
    allowed = ALLOWED_TRANSITIONS.get(from_stage, frozenset())
    return [stage for stage in LifecycleStage if stage in allowed]


def is_terminal(stage: LifecycleStage | None) -> bool:
    return stage in TERMINAL_STAGES


def parse_stage(value: str) -> LifecycleStage:
    text = value.strip().lower()
    try:
        return LifecycleStage(text)
    except ValueError:
        raise ValueError(f"Unknown lifecycle stage: {value!r}") from None
