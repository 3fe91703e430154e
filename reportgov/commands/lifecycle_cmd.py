"""Lifecycle commands - inspect the stage transition table."""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

from ..governance.stages import LifecycleStage, allowed_targets, is_terminal, parse_stage


def run_transitions(*, from_stage: str | None = None, output_json: bool = False) -> int:
    """Print allowed targets for one stage, or the whole table."""
    err = Console(stderr=True)

    if from_stage is None:
        sources: list[LifecycleStage | None] = [None, *LifecycleStage]
    elif from_stage.strip().lower() in ("none", "-"):
        sources = [None]
    else:
        try:
            sources = [parse_stage(from_stage)]
        except ValueError as e:
            err.print(str(e), style="bold red")
            return 1

    rows = [
        (source.value if source else "(none)", [t.value for t in allowed_targets(source)], is_terminal(source))
        for source in sources
    ]

    if output_json:
        print(json.dumps(
            [{"from": src, "to": targets, "terminal": terminal} for src, targets, terminal in rows],
            indent=2,
        ))
        return 0

    console = Console()
    table = Table(title="Lifecycle transitions")
    table.add_column("From", style="cyan")
    table.add_column("Allowed to")
    for src, targets, terminal in rows:
        table.add_row(src, ", ".join(targets) if targets else ("(terminal)" if terminal else "-"))
    console.print(table)
    return 0
