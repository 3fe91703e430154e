"""
Persistence and audit boundaries for governance aggregates.

A Repository stores whole aggregates: `save` replaces the stored state in
one step or not at all. An AuditSink receives one AuditRecord per
successful transition, after the aggregate has been saved.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Iterator, Protocol

from ..errors import GovernanceError, UnknownEntityError
from .aggregate import GovernanceAggregate
from .events import AuditRecord

logger = logging.getLogger(__name__)


class Repository(Protocol):
    def load(self, report_id: str) -> GovernanceAggregate:
        ...

    def save(self, aggregate: GovernanceAggregate) -> None:
        ...

    def exists(self, report_id: str) -> bool:
        ...

    def ids(self) -> list[str]:
        ...


class InMemoryRepository:
    """
    Dict-backed repository holding private copies.

    `load` hands out a copy, so a caller mutating it and then failing never
    touches the stored state. `save` swaps the stored copy under a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, GovernanceAggregate] = {}

    def load(self, report_id: str) -> GovernanceAggregate:
        with self._lock:
            stored = self._items.get(report_id)
            if stored is None:
                raise UnknownEntityError("Report", report_id)
            return copy.deepcopy(stored)

    def save(self, aggregate: GovernanceAggregate) -> None:
        aggregate.verify()
        snapshot = copy.deepcopy(aggregate)
        with self._lock:
            stored = self._items.get(aggregate.report_id)
            if stored is not None and stored.revision > aggregate.revision:
                raise GovernanceError(
                    f"Stale save for report {aggregate.report_id}: "
                    f"stored revision {stored.revision} > {aggregate.revision}"
                )
            self._items[aggregate.report_id] = snapshot

    def exists(self, report_id: str) -> bool:
        with self._lock:
            return report_id in self._items

    def ids(self) -> list[str]:
        with self._lock:
            return sorted(self._items)


class AuditSink(Protocol):
    def emit(self, record: AuditRecord) -> None:
        ...


class NullAuditSink:
    def emit(self, record: AuditRecord) -> None:
        return None


class ListAuditSink:
    """Keeps records in memory (tests, CLI dry runs)."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []
        self._lock = threading.Lock()

    def emit(self, record: AuditRecord) -> None:
        with self._lock:
            self.records.append(record)


class JsonlAuditSink:
    """
    Append-only JSONL audit log.

    The only write is an append of one line per record; existing lines are
    never rewritten.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def emit(self, record: AuditRecord) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(record.to_json() + "\n")

    def __iter__(self) -> Iterator[AuditRecord]:
        return iter_audit_log(self.path)


def iter_audit_log(path: Path) -> Iterator[AuditRecord]:
    """Yield records in append order; malformed lines are skipped with a warning."""
    path = Path(path)
    if not path.exists():
        return

    with path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield AuditRecord.from_json(line)
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed audit line {path}:{lineno}: {e}")


def read_audit_log(
    path: Path,
    *,
    report_id: str | None = None,
    last_n: int | None = None,
) -> list[AuditRecord]:
    """
    Read audit records, oldest first.

    Args:
        path: JSONL audit log
        report_id: Only records for this report
        last_n: Only the last N matching records
    """
    records = [r for r in iter_audit_log(path) if report_id is None or r.report_id == report_id]
    if last_n is not None:
        return records[-last_n:] if last_n > 0 else []
    return records
