import os
import typer
import httpx
from datetime import datetime
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

# Load the .env.client next to the package, then the working directory's
load_dotenv(Path(__file__).parent.parent / '.env.client')
load_dotenv(Path.cwd() / '.env.client')

app = typer.Typer(help="Insightful CLI", no_args_is_help=True)
console = Console()

from .api_client import ApiClient, ApiError
from .recovery import RecoveryCache
from .commands.upload import upload_file, resume_uploads, DEFAULT_MAX_RETRIES
from .commands.jobs import list_jobs, show_job, rename_job, delete_job, export_job


def get_client() -> ApiClient:
    server_url = os.getenv("INSIGHTFUL_SERVER_URL", "http://localhost:8000")
    token = os.getenv("INSIGHTFUL_TOKEN")
    if not token:
        console.print("[yellow]⚠️  INSIGHTFUL_TOKEN is not set; requests will be rejected[/yellow]")
    return ApiClient(server_url, token=token)


@app.command()
def ping():
    """Connectivity check to the server."""
    client = get_client()
    console.print(f"[yellow]📡 Contacting {client.server_url}...[/yellow]")
    try:
        health = client.health()
        console.print(f"[bold green]🏓 PONG![/bold green] Server is {health.get('status', 'online')}.")
        for service, state in (health.get("services") or {}).items():
            color = "green" if state == "ok" else "red"
            console.print(f"  {service}: [{color}]{state}[/{color}]")
    except (ApiError, httpx.HTTPError) as e:
        console.print(f"[bold red]❌ Connection Failed:[/bold red] {e}")
        raise typer.Exit(1)
    finally:
        client.close()


@app.command()
def whoami():
    """Show the signed-in user."""
    with get_client() as client:
        try:
            user = client.session()["user"]
        except (ApiError, httpx.HTTPError) as e:
            console.print(f"[red]❌ Not signed in: {e}[/red]")
            raise typer.Exit(1)
    console.print(f"[green]👤 {user.get('name') or user['id']}[/green] {user.get('email') or ''}")


@app.command()
def upload(
    file_path: str = typer.Argument(..., help="Path to the meeting audio/video file"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name (defaults to the file name)"),
    retries: int = typer.Option(DEFAULT_MAX_RETRIES, "--retries", "-r", min=1, help="Maximum upload attempts"),
):
    """
    Upload a recording and queue it for AI analysis.

    Failed uploads are kept for an hour; see `insightful pending`.
    """
    with get_client() as client:
        upload_file(client, file_path, name=name, max_retries=retries)


@app.command()
def pending():
    """List uploads that did not finish and can be resumed."""
    entries = RecoveryCache().entries()
    if not entries:
        console.print("[green]✅ No pending uploads.[/green]")
        return

    table = Table(title="⏳ Pending Uploads")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("File", style="green")
    table.add_column("Stage", style="magenta")
    table.add_column("Attempts", justify="right")
    table.add_column("Expires", style="yellow")
    table.add_column("Last error", style="red")

    for entry in entries:
        table.add_row(
            entry.id,
            entry.file_name,
            "uploaded" if entry.file_key else "not uploaded",
            str(entry.attempts),
            datetime.fromtimestamp(entry.expires_at).strftime("%H:%M:%S"),
            entry.last_error or "",
        )
    console.print(table)


@app.command()
def resume(
    entry_id: Optional[str] = typer.Argument(None, help="Pending upload ID (see `insightful pending`)"),
    all_: bool = typer.Option(False, "--all", "-a", help="Resume every pending upload"),
    retries: int = typer.Option(DEFAULT_MAX_RETRIES, "--retries", "-r", min=1, help="Maximum upload attempts"),
):
    """Retry one pending upload, or all of them with --all."""
    if bool(entry_id) == all_:
        console.print("[red]❌ Give either a pending upload ID or --all[/red]")
        raise typer.Exit(1)

    with get_client() as client:
        resume_uploads(client, entry_id=entry_id, max_retries=retries)


@app.command()
def jobs(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter: pending, processing, completed, failed"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum number of jobs to display"),
    lang: Optional[str] = typer.Option(None, "--lang", help="Status label language: zh or en"),
):
    """List your meeting jobs."""
    with get_client() as client:
        list_jobs(client, status=status, limit=limit, lang=lang)


@app.command()
def show(
    job_id: int = typer.Argument(..., help="Job ID"),
    transcript: bool = typer.Option(False, "--transcript", "-t", help="Also print the transcript"),
    lang: Optional[str] = typer.Option(None, "--lang", help="Status label language: zh or en"),
):
    """Show a job's status, summary and action items."""
    with get_client() as client:
        show_job(client, job_id, lang=lang, transcript=transcript)


@app.command()
def rename(
    job_id: int = typer.Argument(..., help="Job ID"),
    file_name: str = typer.Argument(..., help="New name (max 100 characters)"),
):
    """Rename a completed job."""
    with get_client() as client:
        rename_job(client, job_id, file_name)


@app.command()
def delete(
    job_id: int = typer.Argument(..., help="Job ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a job and its recording."""
    with get_client() as client:
        delete_job(client, job_id, yes=yes)


@app.command()
def export(
    job_id: int = typer.Argument(..., help="Job ID"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout"),
    lang: Optional[str] = typer.Option(None, "--lang", help="Report language: zh or en"),
):
    """Export a job's analysis as Markdown."""
    with get_client() as client:
        export_job(client, job_id, output=output, lang=lang)


# Adding a callback ensures the 'Commands' section is generated
@app.callback()
def main():
    """
    Insightful CLI: upload meetings and read their AI summaries.
    """
    pass

if __name__ == "__main__":
    app()
