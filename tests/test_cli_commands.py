from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from reportgov.clock import FixedClock
from reportgov.commands.audit_cmd import run_audit_show
from reportgov.commands.lifecycle_cmd import run_transitions
from reportgov.commands.schedule_cmd import run_schedule_due, run_schedule_next, run_schedule_validate
from reportgov.governance.repository import JsonlAuditSink
from reportgov.governance.service import GovernanceService
from reportgov.governance.stages import LifecycleStage

SCHEDULES = """
[[schedule]]
id = "weekly"
report_type = "sales"
frequency = "weekly"
days_of_week = ["mon", "wed"]

[[schedule]]
id = "eom"
report_type = "finance"
frequency = "monthly"
day_of_month = -1
"""


@pytest.fixture
def schedule_file(tmp_path: Path) -> Path:
    path = tmp_path / "schedules.toml"
    path.write_text(SCHEDULES, encoding="utf-8")
    return path


def test_schedule_due_json(schedule_file: Path, capsys) -> None:
    result = run_schedule_due(schedule_file, on=date(2025, 3, 31), output_json=True)

    assert result == 0
    data = json.loads(capsys.readouterr().out)
    assert data["date"] == "2025-03-31"
    assert [s["schedule_id"] for s in data["due"]] == ["weekly", "eom"]


def test_schedule_due_table(schedule_file: Path, capsys) -> None:
    result = run_schedule_due(schedule_file, on=date(2025, 3, 30))

    assert result == 0
    output = capsys.readouterr().out
    assert "Due on 2025-03-30" in output
    assert "Due: 0 of 2 schedules" in output


def test_schedule_next(schedule_file: Path, capsys) -> None:
    result = run_schedule_next(schedule_file, start=date(2025, 2, 1))

    assert result == 0
    output = capsys.readouterr().out
    assert "2025-02-03" in output
    assert "2025-02-28" in output


def test_schedule_validate(schedule_file: Path, capsys) -> None:
    assert run_schedule_validate(schedule_file) == 0
    assert "OK: 2 schedule(s)" in capsys.readouterr().out


def test_schedule_validate_reports_errors(tmp_path: Path, capsys) -> None:
    bad = tmp_path / "bad.toml"
    bad.write_text('[[schedule]]\nid = "x"\nreport_type = "sales"\nfrequency = "monthly"\n', encoding="utf-8")

    assert run_schedule_validate(bad) == 1
    err = capsys.readouterr().err
    assert "x: day_of_month required" in err


def test_transitions_json(capsys) -> None:
    assert run_transitions(from_stage="review", output_json=True) == 0
    data = json.loads(capsys.readouterr().out)
    assert data == [{"from": "review", "to": ["draft", "approved"], "terminal": False}]


def test_transitions_full_table(capsys) -> None:
    assert run_transitions(output_json=True) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 8
    assert data[0] == {"from": "(none)", "to": ["draft"], "terminal": False}
    assert data[-1] == {"from": "retired", "to": [], "terminal": True}


def test_transitions_unknown_stage(capsys) -> None:
    assert run_transitions(from_stage="live") == 1
    assert "Unknown lifecycle stage" in capsys.readouterr().err


def test_audit_show(tmp_path: Path, clock: FixedClock, capsys) -> None:
    log_path = tmp_path / "audit.jsonl"
    service = GovernanceService(audit=JsonlAuditSink(log_path), clock=clock)
    service.register("rpt-1", "human:alice")
    service.transition("rpt-1", LifecycleStage.REVIEW, "human:alice", "ready")

    assert run_audit_show(log_path, report_id="rpt-1", output_json=True) == 0
    data = json.loads(capsys.readouterr().out)
    assert [r["transition"]["to_stage"] for r in data] == ["draft", "review"]

    assert run_audit_show(log_path, last_n=1) == 0
    assert "Transitions: 1 total" in capsys.readouterr().out


def test_audit_show_missing_file(tmp_path: Path, capsys) -> None:
    assert run_audit_show(tmp_path / "nope.jsonl") == 1
    assert "Audit log not found" in capsys.readouterr().err


def test_schedule_due_defaults_to_clock_today(schedule_file: Path, clock: FixedClock, capsys) -> None:
    assert run_schedule_due(schedule_file, output_json=True, clock=clock) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["date"] == "2025-01-06"
    assert [s["schedule_id"] for s in data["due"]] == ["weekly"]


def test_schedule_next_defaults_to_clock_today(schedule_file: Path, clock: FixedClock, capsys) -> None:
    assert run_schedule_next(schedule_file, clock=clock) == 0

    output = capsys.readouterr().out
    assert "Next runs from 2025-01-06" in output
    assert "2025-01-31" in output
