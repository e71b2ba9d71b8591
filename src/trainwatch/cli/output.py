"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
import sys
from datetime import datetime
from typing import Any

import click

from trainwatch.changes.tracker import TrackingReport
from trainwatch.inclusion.models import DeploymentStatus, EnvironmentVerdict

_STATUS_LABELS = {
    DeploymentStatus.DEPLOYED: "DEPLOYED",
    DeploymentStatus.IN_PROGRESS: "IN PROGRESS",
    DeploymentStatus.NOT_DEPLOYED_YET: "not yet",
    DeploymentStatus.UNKNOWN: "unknown",
    DeploymentStatus.WAITING_FOR_SCHEDULE: "waiting for train",
}


def print_table(headers: list[str], rows: list[list[str]]) -> None:
    """Print a formatted ASCII table with dynamic column widths."""
    if not headers:
        return

    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            if i < len(col_widths):
                col_widths[i] = max(col_widths[i], len(str(cell)))

    def _fmt_row(cells: list[str]) -> str:
        parts = [str(cell).ljust(col_widths[i]) for i, cell in enumerate(cells)]
        return "| " + " | ".join(parts) + " |"

    separator = "+-" + "-+-".join("-" * w for w in col_widths) + "-+"

    click.echo(separator)
    click.echo(_fmt_row(headers))
    click.echo(separator)
    for row in rows:
        padded = list(row) + [""] * (len(headers) - len(row))
        click.echo(_fmt_row(padded[: len(headers)]))
    click.echo(separator)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    click.echo()


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    click.echo(f"Error: {message}", err=True)


def print_detail(label: str, value: Any) -> None:
    click.echo(f"  {label}: {value}")


def format_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M %Z").strip()


def verdict_row(verdict: EnvironmentVerdict) -> list[str]:
    status = _STATUS_LABELS.get(verdict.status, verdict.status.value)
    if verdict.expected_overdue:
        status += " (overdue)"
    owner = str(verdict.matched_attempt.owner_id) if verdict.matched_attempt else "-"
    method = verdict.method.value if verdict.method else "-"
    note = verdict.error or (verdict.source.web_link or "" if verdict.source else "")
    return [
        verdict.environment.display_name,
        status,
        owner,
        format_time(verdict.timestamp),
        format_time(verdict.expected_date),
        method,
        note,
    ]


def print_report(report: TrackingReport) -> None:
    pr = report.pull_request
    click.echo(f"PR #{pr.id}: {pr.title}")
    print_detail("Repository", pr.repository_name or report.parsed_url.repository)
    print_detail("Status", pr.status)
    if pr.closed_at:
        print_detail("Merged", format_time(pr.closed_at))
    if pr.merge_commit_id:
        print_detail("Merge commit", pr.merge_commit_id[:7])
    if report.message:
        print_detail("Note", report.message)
    if not report.verdicts:
        return
    click.echo()
    print_table(
        ["Environment", "Status", "Owner", "Observed", "Expected", "Method", "Details"],
        [verdict_row(v) for v in report.verdicts],
    )
