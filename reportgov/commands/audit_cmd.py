"""Audit command - read a JSONL stage transition log."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..governance.repository import read_audit_log


def run_audit_show(
    path: Path,
    *,
    report_id: str | None = None,
    last_n: int | None = None,
    output_json: bool = False,
) -> int:
    """Show recorded transitions, oldest first."""
    err = Console(stderr=True)

    if not Path(path).exists():
        err.print(f"Audit log not found: {path}", style="bold red")
        return 1

    records = read_audit_log(path, report_id=report_id, last_n=last_n)

    if output_json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return 0

    console = Console()
    title = f"Audit Trail: {report_id}" if report_id else "Audit Trail"
    table = Table(title=title)
    table.add_column("Timestamp", style="dim")
    table.add_column("Report", style="cyan")
    table.add_column("Move")
    table.add_column("Actor")
    table.add_column("Reason")

    for r in records:
        t = r.transition
        table.add_row(
            t.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            r.report_id,
            f"{t.from_stage.value if t.from_stage else '(none)'} -> {t.to_stage.value}",
            t.actor,
            t.reason or "",
        )

    console.print(table)
    console.print(f"\nTransitions: {len(records)} total")
    return 0
