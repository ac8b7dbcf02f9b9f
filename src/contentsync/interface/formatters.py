"""
CLI result formatters.

Rendering of change sets, sync results, audit history and schema reports
with rich, kept separate from command logic.
"""

import logging
from typing import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from contentsync.application.schema_compare import MissingFieldsReport
from contentsync.domain.field_registry import FIELD_NOT_SET, field_label
from contentsync.domain.models import (
    AuditEntry,
    ChangeSet,
    ExportDetails,
    Snapshot,
    SyncResult,
    ValidationFailure,
)
from contentsync.domain.values import display_value

logger = logging.getLogger(__name__)
console = Console()

MAX_CELL = 60


def _clip(text: str, width: int = MAX_CELL) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def show_snapshot(snapshot: Snapshot) -> None:
    console.print(
        Panel(
            f"[green]Stored export[/green] {snapshot.source_key}\n"
            f"Content type: [cyan]{snapshot.content_type}[/cyan]\n"
            f"Records: {snapshot.record_count}  Version: {snapshot.version}",
            title="📦 Snapshot",
            border_style="green",
        )
    )


def show_export_details(details: ExportDetails) -> None:
    captured = details.captured_at.isoformat(timespec="seconds") if details.captured_at else "?"
    console.print(
        Panel(
            f"[green]✅ {details.source_key} matches a stored export[/green]\n"
            f"Content type: [cyan]{details.content_type}[/cyan]\n"
            f"Exported: {captured}  Records: {details.record_count}",
            title="Validation",
            border_style="green",
        )
    )


def show_validation_failure(failure: ValidationFailure) -> None:
    lines = [f"[red]{failure.message}[/red]"]
    if failure.known_sources:
        lines.append("\nKnown exports:")
        lines.extend(f"  • {key}" for key in failure.known_sources)
    console.print(
        Panel("\n".join(lines), title=f"❌ {failure.code.value}", border_style="red")
    )


def show_change_set(change_set: ChangeSet, limit: int | None = 200) -> None:
    """Display a change set as a table plus a summary line."""
    if change_set.is_empty:
        console.print("[yellow]No changes detected.[/yellow]")
    else:
        table = Table(title=f"🔍 Changes in {change_set.source_key}")
        table.add_column("Record", style="cyan", no_wrap=True)
        table.add_column("Field", style="magenta")
        table.add_column("Previous", style="dim")
        table.add_column("New", style="green")

        shown = change_set.changes if limit is None else change_set.changes[:limit]
        for change in shown:
            previous = display_value(change.previous_value) or FIELD_NOT_SET
            table.add_row(
                change.record_id,
                field_label(change.field),
                _clip(previous),
                _clip(display_value(change.new_value)),
            )
        console.print(table)
        if limit is not None and len(change_set) > limit:
            console.print(f"[dim]… {len(change_set) - limit} more changes not shown[/dim]")

    console.print(
        f"\n[blue]📊 Scanned {change_set.total_records_scanned} rows: "
        f"{change_set.records_with_changes} records changed, "
        f"{len(change_set)} field changes, "
        f"{len(change_set.new_records)} new, "
        f"{len(change_set.skipped_rows)} skipped[/blue]"
    )
    for skipped in change_set.skipped_rows:
        record = f" ({skipped.record_id})" if skipped.record_id else ""
        console.print(f"  [yellow]⚠ row {skipped.row_index + 1}{record}: {skipped.reason}[/yellow]")


def show_sync_result(result: SyncResult) -> None:
    style = "green" if result.all_succeeded else "red" if result.success_count == 0 else "yellow"
    lines = [
        f"Succeeded: [green]{result.success_count}[/green]",
        f"Failed: [red]{result.failure_count}[/red]",
    ]
    if result.cancelled:
        lines.append(f"Not sent (cancelled): {len(result.skipped_record_ids)}")
    console.print(Panel("\n".join(lines), title="🔄 Sync result", border_style=style))

    if result.per_record_errors:
        table = Table(title="Per-record errors")
        table.add_column("Record", style="cyan", no_wrap=True)
        table.add_column("Error", style="red")
        for record_id, error in result.per_record_errors.items():
            table.add_row(record_id, _clip(error, 100))
        console.print(table)
        ids = " ".join(f"--only {record_id}" for record_id in result.per_record_errors)
        console.print(f"[dim]Re-run failures with: {ids}[/dim]")


def show_audit_entries(entries: Iterable[AuditEntry], details: bool = False) -> None:
    entries = list(entries)
    if not entries:
        console.print("[yellow]No audit entries.[/yellow]")
        return

    table = Table(title="📋 Sync history")
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Action", style="cyan")
    table.add_column("Content type", style="blue")
    table.add_column("Changes", justify="right")
    table.add_column("OK", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Error")
    for entry in entries:
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.action_type,
            entry.content_type,
            str(entry.change_count),
            str(entry.success_count),
            str(entry.failure_count),
            _clip(entry.error_message or ""),
        )
    console.print(table)

    if details:
        for entry in entries:
            console.print(f"\n[cyan]{entry.id}[/cyan]")
            for change in entry.page_changes:
                console.print(
                    f"  {change.record_label} · {change.field}: "
                    f"{_clip(change.previous_value, 40)} → {_clip(change.new_value, 40)}"
                )


def show_missing_fields(report: MissingFieldsReport) -> None:
    if not report.sample_found:
        console.print(f"[yellow]No sample record available for {report.content_type}.[/yellow]")
        return
    if not report.has_missing:
        console.print(f"[green]✅ All {report.content_type} fields are defined.[/green]")
        return

    source = " (cached)" if report.from_cache else ""
    table = Table(title=f"🧩 Undefined fields for {report.content_type}{source}")
    table.add_column("Field", style="cyan")
    table.add_column("Type", style="magenta")
    for item in report.missing:
        table.add_row(item.key, item.data_type.value)
    console.print(table)
