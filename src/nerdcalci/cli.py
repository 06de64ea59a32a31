"""CLI for nerdcalci documents, calculations and backups."""

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from nerdcalci.config import BACKUP_DIR_NAME, DATABASE_NAME, resolve_data_directory
from nerdcalci.core.backup.manager import BackupManager, BackupStatus
from nerdcalci.core.backup.schedule import run_scheduled_backup
from nerdcalci.core.backup.settings import (
    BackupFrequency,
    BackupLocationMode,
    get_last_backup_at,
    read_settings,
    save_settings,
)
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.core.engine.pipeline import evaluate_expressions
from nerdcalci.errors import NerdCalciError
from nerdcalci.logging_config import configure_logging
from nerdcalci.models.document import BackupInfo, Document, Line
from nerdcalci.workspace import Workspace

app = typer.Typer(help="nerdcalci: line-by-line calculation notebook.")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", "-d", help="Directory holding the database and backups"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose)
    ctx.obj = data_dir or resolve_data_directory()


@contextmanager
def _session(ctx: typer.Context) -> Iterator[tuple[Workspace, BackupManager]]:
    """Open the store for one command and turn domain errors into exit code 1."""
    data_dir: Path = ctx.obj
    try:
        store = DocumentStore.open(data_dir / DATABASE_NAME)
    except NerdCalciError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    try:
        yield Workspace(store), BackupManager(store, data_dir / BACKUP_DIR_NAME)
    except (NerdCalciError, ValueError, IndexError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        store.close()


def _resolve_document(workspace: Workspace, ref: str) -> Document:
    """Find a document by id or by exact name."""
    if ref.isdigit():
        document = workspace.store.get_document(int(ref))
        if document is not None:
            return document
    document = workspace.store.find_document_by_name(ref)
    if document is None:
        typer.echo(f"Document '{ref}' not found.")
        raise typer.Exit(1)
    return document


def _echo_lines(lines: list[Line]) -> None:
    width = max((len(line.expression) for line in lines), default=0)
    for line in lines:
        result = f"  = {line.result}" if line.result else ""
        typer.echo(f"{line.sort_order:>3}  {line.expression:<{width}}{result}".rstrip())


def _format_time(epoch_ms: int) -> str:
    return f"{datetime.fromtimestamp(epoch_ms / 1000):%Y-%m-%d %H:%M}"


@app.command()
def new(ctx: typer.Context, name: str = typer.Argument(..., help="Document name")) -> None:
    """Create an empty document."""
    with _session(ctx) as (workspace, _):
        document = workspace.create_document(name)
        typer.echo(f"Created '{document.name}' [id={document.id}]")


@app.command()
def documents(ctx: typer.Context) -> None:
    """List documents, pinned first."""
    with _session(ctx) as (workspace, _):
        docs = workspace.store.list_documents()
        typer.echo(f"{len(docs)} documents:\n")
        for doc in docs:
            pin = "* " if doc.is_pinned else "  "
            typer.echo(f"{pin}{doc.name}  ({_format_time(doc.last_modified)})  [id={doc.id}]")


@app.command()
def show(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    as_text: bool = typer.Option(False, "--text", "-t", help="Print as annotated text"),
) -> None:
    """Show a document's lines and results."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        if as_text:
            typer.echo(workspace.copy_as_text(doc.id))
        else:
            _echo_lines(workspace.get_lines(doc.id))


@app.command()
def append(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    expression: str = typer.Argument(..., help="Line text"),
) -> None:
    """Add a line at the end of a document."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        lines = workspace.get_lines(doc.id)
        if len(lines) == 1 and not lines[0].expression:
            _echo_lines(workspace.update_line(doc.id, 0, expression))
        else:
            _echo_lines(workspace.add_line(doc.id, expression=expression))


@app.command(name="set-line")
def set_line(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    index: int = typer.Argument(..., help="Line number, starting at 0"),
    expression: str = typer.Argument(..., help="New line text"),
) -> None:
    """Replace the text of a line."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        _echo_lines(workspace.update_line(doc.id, index, expression))


@app.command(name="insert-line")
def insert_line(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    index: int = typer.Argument(..., help="Position of the new line"),
    expression: str = typer.Argument("", help="Line text"),
) -> None:
    """Insert a line, shifting later lines down."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        _echo_lines(workspace.add_line(doc.id, index, expression))


@app.command(name="delete-line")
def delete_line(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    index: int = typer.Argument(..., help="Line number, starting at 0"),
) -> None:
    """Delete a line."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        _echo_lines(workspace.delete_line(doc.id, index))


@app.command()
def clear(
    ctx: typer.Context, document: str = typer.Argument(..., help="Document name or id")
) -> None:
    """Remove every line of a document."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        workspace.clear_all_lines(doc.id)
        typer.echo(f"Cleared '{doc.name}'")


@app.command()
def rename(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    new_name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a document."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        renamed = workspace.rename_document(doc.id, new_name)
        typer.echo(f"Renamed '{doc.name}' to '{renamed.name}'")


@app.command()
def duplicate(
    ctx: typer.Context,
    document: str = typer.Argument(..., help="Document name or id"),
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Name of the copy")
    ] = None,
) -> None:
    """Copy a document with all its lines."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        copy = workspace.duplicate_document(doc.id, name)
        typer.echo(f"Created '{copy.name}' [id={copy.id}]")


@app.command()
def delete(
    ctx: typer.Context, document: str = typer.Argument(..., help="Document name or id")
) -> None:
    """Delete a document and its lines."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        workspace.delete_document(doc.id)
        typer.echo(f"Deleted '{doc.name}'")


@app.command()
def pin(
    ctx: typer.Context, document: str = typer.Argument(..., help="Document name or id")
) -> None:
    """Pin or unpin a document."""
    with _session(ctx) as (workspace, _):
        doc = _resolve_document(workspace, document)
        updated = workspace.toggle_pin(doc.id)
        state = "Pinned" if updated.is_pinned else "Unpinned"
        typer.echo(f"{state} '{updated.name}'")


@app.command()
def calc(
    source: Annotated[
        Path | None, typer.Argument(help="Text file to evaluate (stdin when omitted)")
    ] = None,
) -> None:
    """Evaluate lines from a file or stdin without saving anything."""
    if source is None:
        text = sys.stdin.read()
    else:
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Cannot read {}: {}", source, e)
            raise typer.Exit(1) from e

    expressions = text.splitlines()
    results = evaluate_expressions(expressions)
    width = max((len(expr) for expr in expressions), default=0)
    for expression, result in zip(expressions, results, strict=True):
        suffix = f"  = {result}" if result else ""
        typer.echo(f"{expression:<{width}}{suffix}".rstrip())


@app.command()
def export(
    ctx: typer.Context, path: Path = typer.Argument(..., help="Archive to write")
) -> None:
    """Export all documents to a ZIP archive."""
    with _session(ctx) as (_, manager):
        count = manager.export_archive(path)
        typer.echo(f"Exported {count} file(s)")


@app.command(name="import")
def import_cmd(
    ctx: typer.Context, path: Path = typer.Argument(..., help="Archive to read")
) -> None:
    """Import documents from a ZIP archive, replacing same-named ones."""
    with _session(ctx) as (_, manager):
        count = manager.import_archive(path)
        typer.echo(f"Imported {count} file(s)")


@app.command()
def backup(
    ctx: typer.Context,
    if_due: bool = typer.Option(
        False, "--if-due", help="Only back up when automatic backups are enabled and due"
    ),
) -> None:
    """Back up all documents now, or on schedule with --if-due."""
    with _session(ctx) as (_, manager):
        if if_due:
            scheduled = run_scheduled_backup(manager)
            if scheduled is None:
                typer.echo("No backup due")
                return
            result = scheduled
        else:
            result = manager.backup_now()
        typer.echo(result.message)
        if result.status is not BackupStatus.NOTHING_TO_BACK_UP:
            typer.echo(f"  {result.path}")


@app.command()
def backups(ctx: typer.Context) -> None:
    """List backups in the configured location, newest first."""
    with _session(ctx) as (_, manager):
        infos = manager.list_backups()
        typer.echo(f"{len(infos)} backups:\n")
        for number, info in enumerate(infos, start=1):
            typer.echo(f"  {number}. {info.display_name}  ({_format_time(info.last_modified)})")


@app.command()
def restore(
    ctx: typer.Context,
    backup_ref: str = typer.Argument(..., help="Number from 'backups' or the file name"),
) -> None:
    """Restore documents from a backup."""
    with _session(ctx) as (_, manager):
        infos = manager.list_backups()
        chosen: BackupInfo | None = None
        if backup_ref.isdigit() and 1 <= int(backup_ref) <= len(infos):
            chosen = infos[int(backup_ref) - 1]
        else:
            chosen = next((i for i in infos if backup_ref in (i.display_name, i.path)), None)
        if chosen is None:
            typer.echo(f"Backup '{backup_ref}' not found.")
            raise typer.Exit(1)
        count = manager.restore_from_backup(chosen)
        typer.echo(f"Restored {count} file(s)")


@app.command()
def settings(
    ctx: typer.Context,
    enabled: Annotated[
        bool | None,
        typer.Option("--enabled/--disabled", help="Turn automatic backups on or off"),
    ] = None,
    frequency: Annotated[
        BackupFrequency | None, typer.Option("--frequency", "-f", help="Backup interval")
    ] = None,
    location: Annotated[
        BackupLocationMode | None, typer.Option("--location", "-l", help="Where backups go")
    ] = None,
    folder: Annotated[
        str | None, typer.Option("--folder", help="Custom backup folder")
    ] = None,
    keep: Annotated[
        int | None, typer.Option("--keep", "-k", help="Number of backups to keep")
    ] = None,
) -> None:
    """Show or change backup settings."""
    with _session(ctx) as (workspace, _):
        store = workspace.store
        current = read_settings(store)
        changes: dict[str, object] = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if frequency is not None:
            changes["frequency"] = frequency
        if location is not None:
            changes["location_mode"] = location
        if folder is not None:
            changes["custom_folder"] = folder or None
        if keep is not None:
            changes["keep_latest_count"] = keep
        if changes:
            current = replace(current, **changes)
            save_settings(store, current)

        last = get_last_backup_at(store)
        typer.echo(f"enabled:        {current.enabled}")
        typer.echo(f"frequency:      {current.frequency.value}")
        typer.echo(f"location:       {current.location_mode.value}")
        typer.echo(f"custom folder:  {current.custom_folder or '-'}")
        typer.echo(f"keep latest:    {current.keep_latest_count}")
        typer.echo(f"last backup:    {_format_time(last) if last else 'never'}")
