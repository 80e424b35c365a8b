"""CLI interface for CDN Cache using Typer.

Main entry point for the application. Handles command definitions,
argument parsing and Rich console output.
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.table import Table

from .config import get_app_config, get_records_path, load_secrets, validate_config
from .errors import CDNCacheError, ConfigError, DeleteError, NoInputError
from .history import HistoryManager
from .inputs import from_bytes, from_clipboard, from_paths
from .models import ImageInput, ImageRecord, PipelineState, PipelineStatus
from .pipeline import UploadOrchestrator
from .records import RecordStore
from .upload import init_gateway
from .utils import (
    console,
    copy_to_clipboard,
    display_name,
    format_dimensions,
    format_file_size,
    format_output,
    print_error,
    print_success,
    print_warning,
    setup_logging,
)


app = typer.Typer(
    name="cdn-cache",
    help="Upload images to your CDN once per unique content",
    add_completion=False,
)

SECRETS_OPTION = typer.Option(
    None,
    "--secrets",
    help="Path to secrets.json",
    dir_okay=False,
)


def load_validated_secrets(secrets_path: Path | None) -> dict[str, Any]:
    """Load secrets.json and validate the selected provider."""
    secrets = load_secrets(secrets_path)
    validate_config(secrets)
    return secrets


def open_store(secrets_path: Path | None) -> RecordStore:
    """Open the record store, honouring records_path when secrets exist."""
    try:
        secrets = load_secrets(secrets_path)
    except ConfigError:
        if secrets_path is not None:
            raise
        secrets = None
    return RecordStore(get_records_path(secrets))


async def run_pipeline(secrets: dict[str, Any], items: list[ImageInput]) -> list[PipelineState]:
    gateway = init_gateway(secrets)
    try:
        orchestrator = UploadOrchestrator(RecordStore(get_records_path(secrets)), gateway)
        return await orchestrator.upload_many(items)
    finally:
        await gateway.aclose()


async def run_delete(secrets: dict[str, Any], store: RecordStore, record: ImageRecord) -> None:
    gateway = init_gateway(secrets)
    try:
        await HistoryManager(store, gateway).delete_image(record)
    finally:
        await gateway.aclose()


async def run_verify(secrets: dict[str, Any]) -> None:
    gateway = init_gateway(secrets)
    try:
        await gateway.verify()
    finally:
        await gateway.aclose()


def format_timestamp(created_at: int) -> str:
    return datetime.fromtimestamp(created_at / 1000).strftime("%Y-%m-%d %H:%M")


def collect_inputs(
    files: list[Path] | None,
    clipboard: bool,
    stdin: bool,
    name: str,
) -> list[ImageInput]:
    """Gather pipeline inputs from every requested source."""
    items: list[ImageInput] = []
    if files:
        items.extend(from_paths(files))
    if clipboard:
        try:
            items.extend(from_clipboard())
        except NoInputError as e:
            print_warning(str(e))
    if stdin:
        try:
            items.append(from_bytes(sys.stdin.buffer.read(), name))
        except NoInputError as e:
            print_warning(str(e))
    return items


def render_states(states: list[PipelineState]) -> None:
    """Print a table with one row per pipeline run."""
    table = Table(title="Upload Results")
    table.add_column("Image", style="cyan")
    table.add_column("Status")
    table.add_column("Size", justify="right")
    table.add_column("Dimensions", justify="right")
    table.add_column("URL", style="green")

    for state in states:
        if state.status == PipelineStatus.SUCCEEDED:
            record = state.image
            status = "[yellow]cached[/yellow]" if state.cache else "[green]uploaded[/green]"
            table.add_row(
                display_name(record),
                status,
                format_file_size(record.size),
                format_dimensions(record),
                record.url,
            )
        elif state.status == PipelineStatus.FAILED:
            table.add_row(
                Path(state.source or "").name or state.source,
                "[red]failed[/red]",
                "",
                "",
                f"[red]{state.error}[/red]",
            )
        else:
            table.add_row(state.source or "", state.status.value, "", "", "")

    console.print(table)


@app.command()
def upload(
    files: Optional[list[Path]] = typer.Argument(
        None,
        help="Image files or folders to upload",
        exists=True,
    ),
    clipboard: bool = typer.Option(
        False,
        "--clipboard",
        "-c",
        help="Upload the image on the clipboard",
    ),
    stdin: bool = typer.Option(
        False,
        "--stdin",
        help="Read image bytes from standard input",
    ),
    name: str = typer.Option(
        "stdin",
        "--name",
        help="Name for --stdin data (its extension is a format hint)",
    ),
    output_format: str = typer.Option(
        "plain",
        "--output-format",
        "-o",
        help="Output format: plain|markdown|html",
    ),
    copy: bool = typer.Option(
        True,
        "--copy/--no-copy",
        help="Copy the output to the clipboard",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open",
        help="Open the first URL in the browser",
    ),
    secrets_path: Optional[Path] = SECRETS_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Upload images, reusing earlier uploads of identical content."""
    setup_logging(verbose)

    try:
        items = collect_inputs(files, clipboard, stdin, name)
    except CDNCacheError as e:
        print_error(f"Could not read input: {e}")
        raise typer.Exit(1)

    if not items:
        console.print("[yellow]No images selected[/yellow]")
        raise typer.Exit(0)

    try:
        secrets = load_validated_secrets(secrets_path)
        with console.status("[bold green]Uploading..."):
            states = asyncio.run(run_pipeline(secrets, items))
    except CDNCacheError as e:
        print_error(f"Upload failed: {e}")
        raise typer.Exit(1)

    render_states(states)

    records = [s.image for s in states if s.status == PipelineStatus.SUCCEEDED]
    if records:
        output = format_output(records, output_format)
        console.print("")
        console.print(output)
        if copy and copy_to_clipboard(output):
            console.print(f"\n[dim]{len(records)} URL(s) copied to clipboard[/dim]")
        if open_browser:
            typer.launch(records[0].url)

    failed = sum(1 for s in states if s.status == PipelineStatus.FAILED)
    if failed:
        print_error(f"{failed} image(s) failed")
        raise typer.Exit(1)


@app.command()
def history(
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Number of records to show",
        min=1,
    ),
    secrets_path: Optional[Path] = SECRETS_OPTION,
) -> None:
    """Show uploaded images, most recent first."""
    try:
        store = open_store(secrets_path)
    except CDNCacheError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    records = HistoryManager(store).list(limit=limit)
    if not records:
        console.print("[yellow]No upload history found[/yellow]")
        return

    table = Table(title="Uploaded Images")
    table.add_column("Hash", style="dim")
    table.add_column("Image", style="cyan")
    table.add_column("From")
    table.add_column("Format")
    table.add_column("Size", justify="right")
    table.add_column("Dimensions", justify="right")
    table.add_column("Uploaded", style="dim")
    table.add_column("URL", style="green")

    for record in records:
        table.add_row(
            record.hash[:10],
            display_name(record),
            record.from_.value,
            record.format,
            format_file_size(record.size),
            format_dimensions(record),
            format_timestamp(record.created_at),
            record.url,
        )

    console.print(table)
    console.print("\n[dim]Use 'cdn-cache delete <hash>' to delete an image[/dim]")


@app.command()
def delete(
    hash_prefix: str = typer.Argument(..., help="Content hash (or a unique prefix)"),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation prompt",
    ),
    secrets_path: Optional[Path] = SECRETS_OPTION,
) -> None:
    """Delete an image from the CDN and forget it locally."""
    try:
        secrets = load_validated_secrets(secrets_path)
        store = RecordStore(get_records_path(secrets))
        record = HistoryManager(store).find(hash_prefix)
    except CDNCacheError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print(f"\n[bold]{display_name(record)}[/bold]  {record.url}")
    if not force:
        if not typer.confirm("Delete this image from the CDN?", default=False):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    try:
        with console.status("[bold red]Deleting..."):
            asyncio.run(run_delete(secrets, store, record))
    except DeleteError as e:
        print_error(f"{e}. The local record was kept; try again later.")
        raise typer.Exit(1)
    except CDNCacheError as e:
        print_error(f"Delete failed: {e}")
        raise typer.Exit(1)

    print_success("Image deleted successfully")


@app.command("open")
def open_cmd(
    hash_prefix: str = typer.Argument(..., help="Content hash (or a unique prefix)"),
    preview: Optional[int] = typer.Option(
        None,
        "--preview",
        "-w",
        help="Open a resized preview of this width instead",
        min=1,
    ),
    secrets_path: Optional[Path] = SECRETS_OPTION,
) -> None:
    """Open an uploaded image in the browser."""
    try:
        store = open_store(secrets_path)
        record = HistoryManager(store).find(hash_prefix)
        url = record.url
        if preview is not None:
            gateway = init_gateway(load_validated_secrets(secrets_path))
            url = gateway.preview_url(record.url, preview)
    except CDNCacheError as e:
        print_error(str(e))
        raise typer.Exit(1)

    typer.launch(url)


@app.command("copy")
def copy_cmd(
    hash_prefix: str = typer.Argument(..., help="Content hash (or a unique prefix)"),
    output_format: str = typer.Option(
        "plain",
        "--output-format",
        "-o",
        help="Output format: plain|markdown|html",
    ),
    secrets_path: Optional[Path] = SECRETS_OPTION,
) -> None:
    """Copy an uploaded image URL to the clipboard."""
    try:
        record = HistoryManager(open_store(secrets_path)).find(hash_prefix)
    except CDNCacheError as e:
        print_error(str(e))
        raise typer.Exit(1)

    output = format_output([record], output_format)
    console.print(output)
    if copy_to_clipboard(output):
        print_success("Copied to clipboard")
    else:
        print_warning("Clipboard not available")


@app.command()
def clear(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation prompt",
    ),
    secrets_path: Optional[Path] = SECRETS_OPTION,
) -> None:
    """Forget all local records. Remote images are not deleted."""
    try:
        store = open_store(secrets_path)
    except CDNCacheError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    if not force:
        if not typer.confirm(f"Forget {len(store)} local record(s)?", default=False):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    removed = HistoryManager(store).clear()
    print_success(f"Cleared {removed} record(s)")


@app.command()
def auth(secrets_path: Optional[Path] = SECRETS_OPTION) -> None:
    """Validate secrets.json and test the provider connection."""
    try:
        with console.status("[bold green]Validating configuration..."):
            secrets = load_validated_secrets(secrets_path)

        console.print("[green]✓[/green] Configuration valid")
        app_config = get_app_config(secrets)

        with console.status(f"[bold green]Testing {app_config.provider} connection..."):
            asyncio.run(run_verify(secrets))

        console.print(f"[green]✓[/green] {app_config.provider} connection successful")
        console.print(f"  Records: {get_records_path(secrets)}")

    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        raise typer.Exit(1)
    except CDNCacheError as e:
        console.print(f"[red]✗[/red] Connection error: {e}")
        raise typer.Exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
