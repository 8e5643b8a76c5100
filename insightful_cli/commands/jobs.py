# Job commands - list jobs, show a job's analysis, rename, delete, export Markdown

from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from insightful.core.i18n import status_label

from ..api_client import ApiClient, ApiError

console = Console()

STATUS_STYLES = {
    "PENDING": "white",
    "PROCESSING": "blue",
    "COMPLETED": "green",
    "FAILED": "red",
}


def _fail(message: str):
    console.print(f"[red]❌ {message}[/red]")
    raise typer.Exit(1)


def _handle_error(e: Exception, job_id: Optional[int] = None):
    if isinstance(e, ApiError):
        if e.status_code == 401:
            _fail("Not signed in - set INSIGHTFUL_TOKEN")
        if e.status_code == 404:
            _fail(f"Job {job_id} not found" if job_id else "Not found")
        if e.status_code == 403:
            _fail("You do not own this job")
        _fail(f"Server error: {e.status_code} {e.detail}")
    if isinstance(e, httpx.TimeoutException):
        _fail("Request timeout - server may be slow or unreachable")
    if isinstance(e, httpx.TransportError):
        _fail(f"Cannot connect to server: {e}")
    _fail(str(e))


def list_jobs(client: ApiClient, status: Optional[str] = None, limit: int = 50, lang: Optional[str] = None):
    """
    List your jobs, newest first.
    """
    try:
        jobs = client.list_jobs(status=status, limit=limit)
    except (ApiError, httpx.HTTPError) as e:
        _handle_error(e)

    if not jobs:
        console.print("[yellow]📂 No jobs found.[/yellow]")
        return

    table = Table(title="🎙️  Meetings")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("File", style="green")
    table.add_column("Status")
    table.add_column("Created", style="yellow")

    for job in jobs:
        style = STATUS_STYLES.get(job["status"], "white")
        table.add_row(
            str(job["id"]),
            job.get("file_name") or "",
            f"[{style}]{status_label(job['status'], lang)}[/{style}]",
            (job.get("created_at") or "")[:19].replace("T", " "),
        )

    console.print(table)
    console.print(f"[green]✅ {len(jobs)} job(s)[/green]")


def show_job(client: ApiClient, job_id: int, lang: Optional[str] = None, transcript: bool = False):
    """
    Show a job's status and analysis.
    """
    try:
        job = client.get_job(job_id)
    except (ApiError, httpx.HTTPError) as e:
        _handle_error(e, job_id)

    style = STATUS_STYLES.get(job["status"], "white")
    console.print(f"[bold]{job.get('file_name') or f'Job {job_id}'}[/bold]")
    console.print(f"Status: [{style}]{status_label(job['status'], lang)}[/{style}]")
    console.print(f"Created: {job.get('created_at')}")
    if job.get("error_message"):
        console.print(f"[red]Error: {job['error_message']}[/red]")

    analysis = job.get("analysis_result")
    if not analysis:
        console.print("[dim]No analysis yet.[/dim]")
        return

    console.print(Panel(analysis.get("summary") or "-", title="Summary"))

    items = analysis.get("action_items") or []
    if items:
        table = Table(title="Action Items")
        table.add_column("Task", style="white")
        table.add_column("Assignee", style="cyan")
        table.add_column("Due", style="yellow")
        for item in items:
            if isinstance(item, str):
                table.add_row(item, "", "")
            else:
                table.add_row(
                    item.get("task") or item.get("text") or "",
                    item.get("assignee") or item.get("owner") or "",
                    item.get("due_date") or item.get("dueDate") or "",
                )
        console.print(table)

    for decision in analysis.get("key_decisions") or []:
        text = decision if isinstance(decision, str) else decision.get("text", "")
        console.print(f"• {text}")

    if transcript and analysis.get("transcript"):
        console.print(Panel(analysis["transcript"], title="Transcript"))


def rename_job(client: ApiClient, job_id: int, file_name: str):
    try:
        result = client.rename_job(job_id, file_name)
    except ApiError as e:
        if e.status_code == 400:
            _fail(e.detail)
        _handle_error(e, job_id)
    except httpx.HTTPError as e:
        _handle_error(e, job_id)

    console.print(f"[green]✅ {result.get('message', 'Renamed')}[/green]")


def delete_job(client: ApiClient, job_id: int, yes: bool = False):
    if not yes and not typer.confirm(f"Delete job {job_id} and its recording?"):
        raise typer.Exit(0)

    try:
        client.delete_job(job_id)
    except (ApiError, httpx.HTTPError) as e:
        _handle_error(e, job_id)

    console.print(f"[green]🗑️  Job {job_id} deleted[/green]")


def export_job(client: ApiClient, job_id: int, output: Optional[str] = None, lang: Optional[str] = None):
    try:
        content = client.export_job(job_id, lang=lang)
    except ApiError as e:
        if e.status_code == 409:
            _fail(f"Job {job_id} has no analysis yet")
        _handle_error(e, job_id)
    except httpx.HTTPError as e:
        _handle_error(e, job_id)

    if not output:
        console.print(content, markup=False)
        return

    Path(output).write_text(content, encoding="utf-8")
    console.print(f"[green]✅ Exported to {output}[/green]")
