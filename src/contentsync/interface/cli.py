"""
contentsync command line interface.

Commands:
    snapshot        Record an export as the baseline for later imports
    validate        Check that an import source matches a stored export
    detect          Show the changes an import would apply
    sync            Apply an import's changes to HubSpot
    logs            Show sync history
    missing-fields  List live fields missing from local field metadata
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional

import typer

from contentsync.application.container import Container
from contentsync.domain.change_types import ImportType
from contentsync.domain.errors import ConfigError, MetadataUnavailable, SourceValidationError
from contentsync.domain.models import SourceKey
from contentsync.infrastructure.logging_config import setup_logging
from contentsync.infrastructure.readers.import_reader import read_import_file
from contentsync.interface import formatters
from contentsync.interface.formatters import console

logger = logging.getLogger(__name__)

EXIT_PARTIAL_FAILURE = 1
EXIT_INVALID_SOURCE = 2
EXIT_METADATA_UNAVAILABLE = 3
EXIT_CONFIG_ERROR = 4

app = typer.Typer(
    name="contentsync",
    help="🔄 Reconcile spreadsheet imports with HubSpot CMS content",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def get_container(config_dir: Path) -> Container:
    """Build the dependency container for a command run."""
    return Container(config_dir)


def _container(ctx: typer.Context) -> Container:
    container = ctx.obj
    if container is None:
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    return container


def _source_key(
    path: Path, sheet_id: Optional[str], tab_name: Optional[str]
) -> tuple[ImportType, SourceKey]:
    """Sheet imports are identified by sheet/tab; file imports by file name."""
    if sheet_id or tab_name:
        return ImportType.SHEET, SourceKey.for_sheet(sheet_id or "", tab_name or "")
    return ImportType.FILE, SourceKey.for_file(path.name)


def _read(path: Path, key: SourceKey, tab_name: Optional[str]):
    tab = tab_name if path.suffix.lower() != ".csv" else None
    try:
        return read_import_file(path, tab=tab, source_key=key)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_INVALID_SOURCE) from e


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path = typer.Option(
        Path("config"), "--config-dir", "-c", help="Directory containing contentsync.json"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also log to this file"),
) -> None:
    """Reconcile spreadsheet imports with HubSpot CMS content."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file)
    try:
        ctx.obj = get_container(config_dir)
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e
    ctx.call_on_close(ctx.obj.close)


@app.command("snapshot")
def snapshot_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported CSV/XLSX file"),
    content_type: str = typer.Option(..., "--content-type", "-t", help="e.g. landing_pages"),
    user: str = typer.Option(..., "--user", "-u", help="Operator id"),
    sheet_id: Optional[str] = typer.Option(None, "--sheet-id", help="Spreadsheet id"),
    tab_name: Optional[str] = typer.Option(None, "--tab", help="Spreadsheet tab name"),
) -> None:
    """📦 Record an export as the baseline for later imports."""
    container = _container(ctx)
    try:
        _, key = _source_key(path, sheet_id, tab_name)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_INVALID_SOURCE) from e
    batch = _read(path, key, tab_name)
    snapshot = container.service.record_export(user, content_type, key, batch.rows)
    formatters.show_snapshot(snapshot)


@app.command("validate")
def validate_command(
    ctx: typer.Context,
    content_type: str = typer.Option(..., "--content-type", "-t"),
    user: str = typer.Option(..., "--user", "-u"),
    file_name: Optional[str] = typer.Option(None, "--file", help="Import file name"),
    sheet_id: Optional[str] = typer.Option(None, "--sheet-id"),
    tab_name: Optional[str] = typer.Option(None, "--tab"),
) -> None:
    """✅ Check that an import source matches a stored export."""
    container = _container(ctx)
    try:
        import_type, key = _source_key(Path(file_name or ""), sheet_id, tab_name)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_INVALID_SOURCE) from e

    result = container.service.gate.validate(user, content_type, import_type, key)
    if not result.ok:
        formatters.show_validation_failure(result.error)
        raise typer.Exit(code=EXIT_INVALID_SOURCE)
    formatters.show_export_details(result.value)


def _prepare(container: Container, user: str, content_type: str, path: Path,
             sheet_id: Optional[str], tab_name: Optional[str]):
    import_type, key = _source_key(path, sheet_id, tab_name)
    batch = _read(path, key, tab_name)
    try:
        return container.service.prepare(user, content_type, import_type, batch)
    except SourceValidationError as e:
        formatters.show_validation_failure(e.failure)
        raise typer.Exit(code=EXIT_INVALID_SOURCE) from e
    except MetadataUnavailable as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_METADATA_UNAVAILABLE) from e


@app.command("detect")
def detect_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Import CSV/XLSX file"),
    content_type: str = typer.Option(..., "--content-type", "-t"),
    user: str = typer.Option(..., "--user", "-u"),
    sheet_id: Optional[str] = typer.Option(None, "--sheet-id"),
    tab_name: Optional[str] = typer.Option(None, "--tab"),
    limit: int = typer.Option(200, "--limit", help="Maximum changes to display"),
) -> None:
    """🔍 Show the changes an import would apply."""
    plan = _prepare(_container(ctx), user, content_type, path, sheet_id, tab_name)
    formatters.show_change_set(plan.change_set, limit=limit)


@app.command("sync")
def sync_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Import CSV/XLSX file"),
    content_type: str = typer.Option(..., "--content-type", "-t"),
    user: str = typer.Option(..., "--user", "-u"),
    sheet_id: Optional[str] = typer.Option(None, "--sheet-id"),
    tab_name: Optional[str] = typer.Option(None, "--tab"),
    only: Optional[List[str]] = typer.Option(None, "--only", help="Only sync these record ids"),
    fields: Optional[List[str]] = typer.Option(None, "--field", help="Only sync these fields"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """🔄 Apply an import's changes to HubSpot."""
    container = _container(ctx)
    plan = _prepare(container, user, content_type, path, sheet_id, tab_name)
    change_set = plan.change_set.select(record_ids=only or None, fields=fields or None)
    formatters.show_change_set(change_set)
    if change_set.is_empty:
        return

    if not yes and not typer.confirm(
        f"Apply {len(change_set)} changes to {change_set.records_with_changes} records?"
    ):
        console.print("[yellow]Aborted.[/yellow]")
        raise typer.Exit(code=0)

    # Ctrl-C stops records that have not started; in-flight calls finish
    cancel_event = threading.Event()
    try:
        outcome = container.service.apply(
            user,
            content_type,
            change_set,
            records=plan.records,
            cancel_event=cancel_event,
        )
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e

    formatters.show_sync_result(outcome.sync_result)
    if not outcome.was_successful:
        raise typer.Exit(code=EXIT_PARTIAL_FAILURE)


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u"),
    limit: int = typer.Option(20, "--limit", "-n"),
    details: bool = typer.Option(False, "--details", help="Show field-level changes"),
) -> None:
    """📋 Show sync history."""
    entries = _container(ctx).store.list_audit_entries(user, limit=limit)
    formatters.show_audit_entries(entries, details=details)


@app.command("missing-fields")
def missing_fields_command(
    ctx: typer.Context,
    content_type: str = typer.Argument(..., help="e.g. landing_pages"),
    force: bool = typer.Option(False, "--force", help="Bypass the cache"),
) -> None:
    """🧩 List live HubSpot fields missing from local field metadata."""
    container = _container(ctx)
    try:
        report = container.missing_field_comparator.compare(content_type, force_refresh=force)
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e
    formatters.show_missing_fields(report)


if __name__ == "__main__":
    app()
