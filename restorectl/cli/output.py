"""CLI output formatters for Rich tables and JSON.

Table views are returned as Rich renderables for the caller to print;
JSON (--json flag) and plain messages are returned as strings that must be
printed verbatim, without markup parsing or wrapping.
"""

import dataclasses
import json
from datetime import datetime
from typing import Any

from rich.console import RenderableType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from restorectl.cli.protocol import JobStatus, JobSummary
from restorectl.services.job_monitor import JobHandle
from restorectl.services.name_inference import NamePatternList

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

STATUS_COLORS = {
    "Idle": "dim",
    "Pending": "yellow",
    "Loading": "yellow",
    "InProgress": "blue",
    "Success": "green",
    "Aborted": "dim",
    "Failed": "red",
    "Stalled": "magenta",
}

STATUS_LABELS = {
    "Pending": "Pending",
    "Loading": "Loading",
    "InProgress": "In progress",
    "Success": "Finished with success",
    "Aborted": "Aborted",
    "Failed": "Failed",
    "Stalled": "Status unknown (polling stopped)",
}


def format_created(created: int | None) -> str:
    """Format a Unix timestamp for job tables; a dash when missing."""
    if not created:
        return "—"
    return datetime.fromtimestamp(created).strftime(DATE_FORMAT)


def _status_markup(status: str) -> str:
    color = STATUS_COLORS.get(status, "white")
    label = STATUS_LABELS.get(status, status)
    return f"[{color}]{label}[/{color}]"


def format_job_table(jobs: list[JobSummary], as_json: bool = False) -> RenderableType:
    """Format a list of jobs as a Rich table or JSON.

    Args:
        jobs: List of job summaries to display.
        as_json: If True, return a JSON string instead of a Rich table.

    Returns:
        A JSON or message string, or a Rich table to print.
    """
    if as_json:
        return json.dumps([dataclasses.asdict(j) for j in jobs], indent=2)

    if not jobs:
        return "No jobs found."

    table = Table(title="Jobs", show_lines=True)
    table.add_column("ID", style="cyan", justify="right", no_wrap=True)
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Stage")

    for job in jobs:
        table.add_row(
            str(job.jobid),
            format_created(job.created),
            _status_markup(job.status),
            escape(job.stage) if job.stage else "—",
        )
    return table


def format_job_handle(handle: JobHandle, as_json: bool = False) -> RenderableType:
    """Format the final state of a monitored job as a Rich panel or JSON."""
    if as_json:
        return json.dumps({
            "jobid": handle.id,
            "status": handle.status.value,
            "stage": handle.stage,
            "database_name": handle.database_name,
            "stdout": handle.stdout.content,
            "stdout_truncated": handle.stdout.truncated,
            "stderr": handle.stderr.content,
            "stderr_truncated": handle.stderr.truncated,
            "error": handle.error,
        }, indent=2)

    lines = [
        f"[bold]Job ID:[/bold]    {handle.id}",
        f"[bold]Status:[/bold]    {_status_markup(handle.status.value)}",
        f"[bold]Stage:[/bold]     {escape(handle.stage) or '—'}",
        f"[bold]Database:[/bold]  {escape(handle.database_name or '—')}",
    ]
    if handle.stdout.is_trimmed or handle.stderr.is_trimmed:
        lines.append("")
        lines.append("[yellow]Output was trimmed; only the most recent part is shown.[/yellow]")
    if handle.error:
        lines.append("")
        lines.append(f"[bold red]Error:[/bold red] {escape(handle.error)}")

    border = "green" if handle.status is JobStatus.SUCCESS else "cyan"
    return Panel("\n".join(lines), title="Restore Job", border_style=border)


def format_destinations(destinations: list[Any], preferred: int | None = None,
                        as_json: bool = False) -> RenderableType:
    """Format destination descriptors; the index is the destination id."""
    if as_json:
        return json.dumps(
            [{"id": i, "destination": d} for i, d in enumerate(destinations)],
            indent=2,
        )
    if not destinations:
        return "No destinations configured on the server."

    table = Table(title="Destinations")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Destination")
    table.add_column("Preferred", justify="center")
    for index, destination in enumerate(destinations):
        if isinstance(destination, dict):
            label = destination.get("name") or json.dumps(destination)
        else:
            label = str(destination)
        table.add_row(str(index), escape(label), "★" if index == preferred else "")
    return table


def format_patterns(patterns: NamePatternList, as_json: bool = False) -> RenderableType:
    """Format naming rules in precedence order."""
    if as_json:
        return json.dumps(patterns.to_store(), indent=2)
    if not len(patterns):
        return "No name patterns defined."

    table = Table(title="Name Patterns (first match wins)")
    table.add_column("#", justify="right")
    table.add_column("Path Pattern", style="cyan")
    table.add_column("Template")
    table.add_column("Case")
    for index, pattern in enumerate(patterns):
        table.add_row(
            str(index),
            escape(pattern.path_pattern),
            escape(pattern.template),
            pattern.case_mode.value,
        )
    return table
