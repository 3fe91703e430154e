"""CLI entrypoint for reportgov."""

import sys
from datetime import datetime
from pathlib import Path

import click

from . import __version__
from .log import configure_logging


@click.group()
@click.version_option(__version__, prog_name="reportgov")
@click.option("--verbose", is_flag=True, help="Log engine activity to stderr")
def cli(verbose: bool) -> None:
    """reportgov - Report schedule evaluation and lifecycle governance.

    Check which report schedules are due, inspect the lifecycle transition
    table, and read stage transition audit logs.
    """
    configure_logging(verbose)


@cli.group()
def schedule() -> None:
    """Schedule file commands."""
    pass


@schedule.command("due")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--date",
    "on",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Calendar date to check (default: today)",
)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
def schedule_due(path: Path, on: datetime | None, output_json: bool) -> None:
    """List schedules due on a date.

    Examples:

        reportgov schedule due schedules.toml

        reportgov schedule due schedules.toml --date 2025-02-28 --json
    """
    from .commands.schedule_cmd import run_schedule_due

    sys.exit(run_schedule_due(path, on=on.date() if on else None, output_json=output_json))


@schedule.command("next")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--from",
    "start",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="First date to consider (default: today)",
)
@click.option("--horizon", type=int, default=366, show_default=True, help="Days to search ahead")
def schedule_next(path: Path, start: datetime | None, horizon: int) -> None:
    """Show the next due date of each schedule."""
    from .commands.schedule_cmd import run_schedule_next

    sys.exit(run_schedule_next(path, start=start.date() if start else None, horizon_days=horizon))


@schedule.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def schedule_validate(path: Path) -> None:
    """Validate a schedule file the way registration would."""
    from .commands.schedule_cmd import run_schedule_validate

    sys.exit(run_schedule_validate(path))


@cli.group()
def lifecycle() -> None:
    """Lifecycle stage commands."""
    pass


@lifecycle.command("transitions")
@click.option(
    "--from",
    "from_stage",
    type=str,
    default=None,
    metavar="STAGE",
    help="Only show targets allowed from this stage ('none' for a new report)",
)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
def lifecycle_transitions(from_stage: str | None, output_json: bool) -> None:
    """Print the stage transition table."""
    from .commands.lifecycle_cmd import run_transitions

    sys.exit(run_transitions(from_stage=from_stage, output_json=output_json))


@cli.group()
def audit() -> None:
    """Audit log commands."""
    pass


@audit.command("show")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--report", "report_id", type=str, default=None, help="Only transitions of this report")
@click.option("--last", "last_n", type=int, default=None, help="Only the last N transitions")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
def audit_show(path: Path, report_id: str | None, last_n: int | None, output_json: bool) -> None:
    """Show a JSONL stage transition log."""
    from .commands.audit_cmd import run_audit_show

    sys.exit(run_audit_show(path, report_id=report_id, last_n=last_n, output_json=output_json))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
