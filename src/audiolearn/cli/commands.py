"""CLI commands for audiolearn.

Commands:
- init-db: Create the database schema
- serve: Run the REST API with uvicorn
- sync: Pull the course catalogue from the content API
- sync-status: Show recent sync log entries
- set-admin: Grant (or revoke) admin rights
- seed: Insert the demo course
"""

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from audiolearn.config import configure_logging, load_app_config
from audiolearn.db import init_db
from audiolearn.db import users_repository as users
from audiolearn.db.seed import seed_demo_content
from audiolearn.db.sync_repository import list_sync_logs
from audiolearn.sync import ContentApiConfigError, ContentApiError, run_sync

app = typer.Typer(
    name="audiolearn",
    help="Audio learning backend: courses, chapters, read-along and progress.",
    no_args_is_help=True,
)

console = Console()

STATUS_STYLES = {
    "success": "[green]success[/green]",
    "error": "[red]error[/red]",
    "in_progress": "[yellow]in progress[/yellow]",
}


@app.callback()
def main(
    log_level: str = typer.Option("warning", "--log-level", help="debug, info, warning, error"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(log_level)


def _open_db() -> None:
    config = load_app_config()
    init_db(config.database_path)


@app.command(name="init-db")
def init_database() -> None:
    """Create the database and its tables."""
    config = load_app_config()
    init_db(config.database_path)
    console.print(f"[green]✓ Database ready[/green] [dim]{config.database_path}[/dim]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the REST API."""
    config = load_app_config()
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    console.print(f"[blue]Serving on http://{bind_host}:{bind_port}[/blue]")
    uvicorn.run("audiolearn.web.api:app", host=bind_host, port=bind_port, reload=reload)


@app.command()
def sync() -> None:
    """Pull courses, assignments and chapters from the content API."""
    _open_db()
    console.print("[blue]Syncing content...[/blue]")
    try:
        result = run_sync()
    except ContentApiConfigError as e:
        console.print(f"[red]✗ {e}[/red]")
        console.print("  Set CONTENT_API_KEY or content_api.api_key in data/config/audiolearn.yaml")
        raise typer.Exit(code=1)
    except ContentApiError as e:
        console.print(f"[red]✗ Sync failed: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Sync completed[/green]: {result.summary()}")


@app.command(name="sync-status")
def sync_status(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of entries"),
) -> None:
    """Show recent sync log entries, newest first."""
    _open_db()
    logs = list_sync_logs(limit)
    if not logs:
        console.print("[yellow]⚠ No sync has run yet[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("When", style="cyan", width=34)
    table.add_column("Status", justify="center", width=12)
    table.add_column("Message", width=70)
    for log in logs:
        table.add_row(log.synced_at, STATUS_STYLES.get(log.status, log.status), log.message or "")
    console.print(table)


@app.command(name="set-admin")
def set_admin(
    user: str = typer.Argument(..., help="User id or email"),
    revoke: bool = typer.Option(False, "--revoke", help="Remove admin rights instead"),
) -> None:
    """Grant admin rights to a user."""
    _open_db()
    record = users.get_user_by_email(user) if "@" in user else users.get_user(user)
    if record is None:
        console.print(f"[red]✗ User not found: {user}[/red]")
        raise typer.Exit(code=1)

    updated = users.set_admin(record.id, is_admin=not revoke)
    if updated is None:
        console.print(f"[red]✗ User was removed before the change: {user}[/red]")
        raise typer.Exit(code=1)
    verb = "is no longer" if revoke else "is now"
    console.print(f"[green]✓ {updated.email or updated.id} {verb} an admin[/green]")
    name = " ".join(part for part in (updated.first_name, updated.last_name) if part)
    if name:
        console.print(f"  [dim]name:[/dim] {name}")
    console.print(f"  [dim]id:[/dim]   {updated.id}")


@app.command()
def seed() -> None:
    """Insert the demo course if the catalogue is empty."""
    _open_db()
    created = seed_demo_content()
    if created:
        console.print(f"[green]✓ Seeded demo course with {created} chapters[/green]")
    else:
        console.print("[yellow]⚠ Courses already exist, skipping seed[/yellow]")


if __name__ == "__main__":
    app()
