"""
Quality gate: pass/fail checks folded into a single go/no-go signal.

`all_passed()` is derived from the check list, never stored. The gate does
not block publication by itself; composing it into a release decision is
the calling layer's policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..util import isoformat_or_none


DEFAULT_QUALITY_THRESHOLD = 0.7

# Lower bound -> grade, checked top-down
GRADE_BANDS: tuple[tuple[float, str], ...] = (
    (0.9, "A"),
    (0.8, "B"),
    (0.7, "C"),
    (0.6, "D"),
)


@dataclass(frozen=True)
class QualityCheck:
    check_id: str
    name: str
    passed: bool
    severity: str = "info"
    score: float | None = None
    check_type: str | None = None
    executed_at: datetime | None = None
    executed_by: str | None = None
    issues: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_id": self.check_id,
            "name": self.name,
            "check_type": self.check_type,
            "passed": self.passed,
            "severity": self.severity,
            "score": self.score,
            "executed_at": isoformat_or_none(self.executed_at),
            "executed_by": self.executed_by,
            "issues": list(self.issues),
        }


@dataclass(frozen=True)
class QualityScore:
    overall: float
    grade: str
    threshold: float
    meets_threshold: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "grade": self.grade,
            "threshold": self.threshold,
            "meets_threshold": self.meets_threshold,
        }


def grade_for(score: float) -> str:
    for lower, grade in GRADE_BANDS:
        if score >= lower:
            return grade
    return "F"


@dataclass(frozen=True)
class QualityGate:
    checks: tuple[QualityCheck, ...] = ()
    failed_count: int = 0
    last_checked_at: datetime | None = None

    def record_check(self, check: QualityCheck) -> QualityGate:
        return QualityGate(
            checks=self.checks + (check,),
            failed_count=self.failed_count + (0 if check.passed else 1),
            last_checked_at=check.executed_at or self.last_checked_at,
        )

    def all_passed(self) -> bool:
        return all(c.passed for c in self.checks)

    def failed_checks(self) -> list[QualityCheck]:
        return [c for c in self.checks if not c.passed]

    def score(self, threshold: float = DEFAULT_QUALITY_THRESHOLD) -> QualityScore:
        """Mean of check scores (missing scores count as 0.0); no checks scores 0.0."""
        overall = sum(c.score or 0.0 for c in self.checks) / len(self.checks) if self.checks else 0.0
        return QualityScore(
            overall=overall,
            grade=grade_for(overall),
            threshold=threshold,
            meets_threshold=overall >= threshold,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_passed": self.all_passed(),
            "failed_count": self.failed_count,
            "last_checked_at": isoformat_or_none(self.last_checked_at),
            "checks": [c.to_dict() for c in self.checks],
        }
