"""CLI for EarlBox.

Commands:
    init-db              - Create database tables
    ingest <path>        - Upload files/directories and print their share tokens
    show <token>         - Show file metadata
    download <token>     - Write a file's content to disk
    stats                - Show file count and total size
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from earlbox.config import settings
from earlbox.db import init_db, make_engine, make_session_factory
from earlbox.exceptions import EarlBoxError
from earlbox.log import configure_logging
from earlbox.models import FileRecord
from earlbox.services import Services, build_services
from earlbox.utils.media import sniff_content_type_from_path

app = typer.Typer(
    name="earlbox",
    help="EarlBox — upload images and videos and share them by an unguessable link",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_services() -> AsyncIterator[Services]:
    """Services bound to a fresh engine for the configured database."""
    engine = make_engine(settings.database_url)
    try:
        await init_db(engine)
        yield build_services(make_session_factory(engine), settings)
    finally:
        await engine.dispose()


def format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KiB", "MiB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"


def _record_panel(record: FileRecord, title: str) -> Panel:
    return Panel(
        f"[bold]Token:[/bold] {record.public_token}\n"
        f"[bold]Name:[/bold] {record.original_name}\n"
        f"[bold]Type:[/bold] {record.content_type}\n"
        f"[bold]Size:[/bold] {record.size_bytes:,} bytes ({format_size(record.size_bytes)})\n"
        f"[bold]Created:[/bold] {record.created_at}",
        title=title,
    )


@app.callback()
def main_callback() -> None:
    configure_logging(settings.log_level)


@app.command("init-db")
def init_database():
    """Create the database tables if they don't exist."""
    async def _init():
        async with open_services():
            pass

    run_async(_init())
    console.print("[green]Database initialized.[/green]")


@app.command()
def ingest(
    path: Annotated[Path, typer.Argument(help="File or directory to upload")],
    content_type: Annotated[
        str | None,
        typer.Option("--content-type", "-t", help="MIME type (sniffed from the file if omitted)"),
    ] = None,
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Display name (single files only)")
    ] = None,
    recursive: Annotated[
        bool, typer.Option("--recursive", "-r", help="Recursively upload directories")
    ] = False,
):
    """Upload files and print the share token for each."""
    if path.is_file():
        files = [path]
    elif path.is_dir():
        pattern = "**/*" if recursive else "*"
        files = sorted(f for f in path.glob(pattern) if f.is_file())
        if name:
            console.print("[red]Error:[/red] --name can only be used with a single file")
            raise typer.Exit(1)
    else:
        console.print(f"[red]Error:[/red] Path does not exist: {path}")
        raise typer.Exit(1)

    if not files:
        console.print("[yellow]No files found to upload.[/yellow]")
        raise typer.Exit(0)

    async def _ingest() -> int:
        failures = 0
        async with open_services() as services:
            for file_path in files:
                data = file_path.read_bytes()
                ctype = content_type or sniff_content_type_from_path(file_path)
                console.print(f"  Uploading: {file_path.name}...", end=" ")
                try:
                    record = await services.ingestion.ingest(
                        name or file_path.name, ctype, len(data), data
                    )
                except EarlBoxError as e:
                    failures += 1
                    console.print(f"[red]ERROR[/red]: {e}")
                    continue
                console.print(f"[green]OK[/green] → {record.public_token}")
        return failures

    failures = run_async(_ingest())
    console.print(f"\n[bold]Summary:[/bold] {len(files) - failures} uploaded, {failures} failed")
    if failures:
        raise typer.Exit(1)


@app.command()
def show(
    token: Annotated[str, typer.Argument(help="Public token of the file")],
):
    """Show metadata for a file."""
    async def _show() -> FileRecord | None:
        async with open_services() as services:
            return await services.retrieval.get_metadata(token)

    record = run_async(_show())
    if record is None:
        console.print(f"[red]Error:[/red] File not found: {token}")
        raise typer.Exit(1)
    console.print(_record_panel(record, "File Details"))


@app.command()
def download(
    token: Annotated[str, typer.Argument(help="Public token of the file")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Destination path (defaults to the original name)"),
    ] = None,
):
    """Write a file's content to disk."""
    async def _download() -> tuple[FileRecord, bytes] | None:
        async with open_services() as services:
            return await services.retrieval.get_content(token)

    try:
        found = run_async(_download())
    except EarlBoxError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if found is None:
        console.print(f"[red]Error:[/red] File not found: {token}")
        raise typer.Exit(1)

    record, data = found
    destination = output or Path(Path(record.original_name).name)
    destination.write_bytes(data)
    console.print(f"[green]Saved[/green] {format_size(len(data))} to {destination}")


@app.command()
def stats():
    """Show file count and total stored size."""
    async def _stats():
        async with open_services() as services:
            return await services.stats.get_stats()

    result = run_async(_stats())

    table = Table(title="EarlBox Statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Files", f"{result.total_files:,}")
    table.add_row("Total size", f"{result.total_size_bytes:,} bytes ({format_size(result.total_size_bytes)})")
    console.print(table)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
