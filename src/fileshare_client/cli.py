import asyncio
import typer
import logging
import sys
from uuid import UUID
if sys.platform == "win32":
    # asyncpg needs the selector loop on Windows
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
from rich.table import Table

from fileshare_client import create_fileshare_client
from fileshare_client.exceptions import DataClientError, FileRecordNotFoundError
from fileshare_client.logging import configure
from fileshare_client.utils.cli_utils import get_rich_console, human_size


app = typer.Typer(help="Admin CLI for the file sharing backend.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(log_level: str = typer.Option(None, "--log-level", help="Overrides LOG_LEVEL.")):
    configure(log_level)


@app.command()
def init():
    """
    Explicit bootstrap: creates the database tables and the public MinIO bucket.
    Uploads never do this on their own.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    async def _bootstrap():
        client = create_fileshare_client()
        try:
            return client.minio.bucket, await client.bootstrap()
        finally:
            await client.aclose()

    with console.status("Creating tables and storage bucket...", spinner="dots"):
        try:
            bucket, result = asyncio.run(_bootstrap())
        except DataClientError as e:
            console.log(f"[bold red]✖[/bold red] Initialization FAILED: {e}")
            raise typer.Exit(code=1)

    console.log("[bold green]✔[/bold green] Database tables created successfully.")
    state = "created" if result["bucket_created"] else "already existed"
    console.log(f"[bold green]✔[/bold green] MinIO bucket '{bucket}' is ready ({state}).")
    console.print("\n[bold green]All services initialized successfully![/bold green]")


@app.command()
def check():
    """Checks connectivity to PostgreSQL and MinIO and whether setup has been run."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        client = create_fileshare_client()
        try:
            return client.minio.bucket, await client.check_connections(), await client.storage_status()
        finally:
            await client.aclose()

    bucket, statuses, storage = asyncio.run(_check())

    pg_status = statuses.get("postgres", "unknown error")
    if pg_status == "ok":
        console.print("[bold green]✔[/bold green] PostgreSQL connection: OK")
    else:
        console.print(f"[bold red]✖[/bold red] PostgreSQL connection: FAILED ({pg_status})")

    minio_status = statuses.get("minio", "unknown error")
    if minio_status == "ok":
        console.print(f"[bold green]✔[/bold green] MinIO connection: OK (bucket: '{bucket}')")
    else:
        console.print(f"[bold red]✖[/bold red] MinIO connection: FAILED ({minio_status})")

    if not (storage["bucket"] and storage["table"]):
        console.print("[bold yellow]![/bold yellow] Setup incomplete; run `fileshare init`.")
        raise typer.Exit(code=1)


@app.command("list")
def list_files(limit: int = typer.Option(50, help="Rows to show, newest first.")):
    """Lists file records as the gallery sees them."""
    async def _list():
        client = create_fileshare_client()
        try:
            return await client.list_files(limit=limit)
        finally:
            await client.aclose()

    try:
        records = asyncio.run(_list())
    except DataClientError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Files ({len(records)})")
    table.add_column("id", style="dim")
    table.add_column("name")
    table.add_column("size", justify="right")
    table.add_column("type")
    table.add_column("created")
    for r in records:
        table.add_row(str(r.id), r.name, human_size(r.size), r.type, r.created_at.isoformat(timespec="seconds"))
    console.print(table)


@app.command()
def delete(file_id: UUID = typer.Argument(..., help="Record id from `fileshare list`.")):
    """Deletes a file: object first, then its row."""
    async def _delete():
        client = create_fileshare_client()
        try:
            return await client.delete_file_by_id(file_id)
        finally:
            await client.aclose()

    try:
        asyncio.run(_delete())
    except FileRecordNotFoundError as e:
        console.print(f"[bold yellow]![/bold yellow] {e}")
        raise typer.Exit(code=1)
    except DataClientError as e:
        console.print(f"[bold red]✖[/bold red] Delete FAILED: {e}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✔[/bold green] Deleted {file_id}")
