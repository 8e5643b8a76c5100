# Upload command - presign, PUT to storage with progress bar, complete; retried with backoff and resumable

import mimetypes
import os
import time
from pathlib import Path
from typing import Optional, Callable, Dict, Any

import httpx
import typer
from rich.console import Console
from rich.progress import Progress, BarColumn, TransferSpeedColumn, TimeRemainingColumn, TaskProgressColumn

from ..api_client import ApiClient, ApiError, ProgressCallback
from ..recovery import RecoveryCache, PendingUpload

console = Console()

DEFAULT_MAX_RETRIES = 3
MAX_BACKOFF_SECONDS = 10.0


class UploadError(Exception):
    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


def backoff_delay(attempt: int) -> float:
    """1s, 2s, 4s ... capped at 10s (attempt is 1-based)"""
    return min(1.0 * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS)


def friendly_error(error: Exception) -> UploadError:
    """Map transport/API failures to a user-facing message and a retry decision"""
    if isinstance(error, UploadError):
        return error
    if isinstance(error, ApiError):
        if error.status_code == 401:
            return UploadError("Authentication failed, please sign in again", retryable=False)
        if error.status_code in (408, 429) or error.status_code >= 500:
            return UploadError(f"Server error ({error.status_code}), please try again later: {error.detail}")
        return UploadError(f"Request rejected ({error.status_code}): {error.detail}", retryable=False)
    if isinstance(error, httpx.TimeoutException):
        return UploadError("Upload timed out")
    if isinstance(error, httpx.TransportError):
        return UploadError("Network error occurred, please check your connection")
    if isinstance(error, OSError):
        return UploadError(f"Cannot read file: {error}", retryable=False)
    return UploadError(str(error) or "Upload failed")


def guess_content_type(file_name: str) -> str:
    guessed_type, _ = mimetypes.guess_type(file_name)
    return guessed_type or "application/octet-stream"


def upload_once(
    client: ApiClient,
    entry: PendingUpload,
    cache: Optional[RecoveryCache] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[str, Any]:
    """
    One presign -> PUT -> complete pass. Skips presign/PUT when the entry
    already reached storage on an earlier attempt.
    """
    if not entry.file_key:
        presign = client.presign(entry.file_name, entry.content_type)
        upload_url = presign.get("upload_url")
        if not upload_url or not presign.get("file_key"):
            raise UploadError("Server did not return a valid upload URL")

        client.put_object(upload_url, entry.file_path, entry.content_type, on_progress=on_progress)

        entry.file_key = presign["file_key"]
        entry.file_url = presign.get("file_url")
        if cache:
            cache.save(entry)

    result = client.complete(entry.file_key, entry.file_name, entry.file_url, entry.content_type)
    if not result.get("job_id"):
        raise UploadError("Server did not return a job id")
    return result


def upload_with_retry(
    client: ApiClient,
    entry: PendingUpload,
    cache: Optional[RecoveryCache] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    on_progress: Optional[ProgressCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """
    Retry a whole upload with exponential backoff.

    Returns {"success": True, "job_id", "file_key", "file_url"} or
    {"success": False, "error"}. KeyboardInterrupt propagates (cancel).
    The cache entry is removed on success and kept, with the last error, on failure.
    """
    last_error = ""

    for attempt in range(1, max_retries + 1):
        entry.attempts += 1
        try:
            result = upload_once(client, entry, cache=cache, on_progress=on_progress)
            if cache:
                cache.remove(entry.id)
            return {
                "success": True,
                "job_id": result["job_id"],
                "file_key": entry.file_key,
                "file_url": entry.file_url,
            }
        except (UploadError, ApiError, httpx.HTTPError, OSError) as e:
            error = friendly_error(e)
            last_error = str(error)
            entry.last_error = last_error
            if cache:
                cache.save(entry)

            if not error.retryable:
                break

            if attempt < max_retries:
                delay = backoff_delay(attempt)
                console.print(f"[yellow]⚠️  Attempt {attempt} failed: {last_error}. Retrying in {delay:.0f}s...[/yellow]")
                sleep(delay)

    return {
        "success": False,
        "error": f"Upload failed after {entry.attempts} attempt(s): {last_error}",
    }


def _run_with_progress(client: ApiClient, entry: PendingUpload, cache: RecoveryCache, max_retries: int) -> Dict[str, Any]:
    file_size = os.path.getsize(entry.file_path)
    with Progress(
        BarColumn(),
        TaskProgressColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console
    ) as progress:
        task = progress.add_task("[cyan]Uploading...", total=file_size)

        def update(sent: int, total: int):
            progress.update(task, completed=sent, total=total)

        return upload_with_retry(client, entry, cache=cache, max_retries=max_retries, on_progress=update)


def upload_file(
    client: ApiClient,
    file_path: str,
    name: Optional[str] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    cache: Optional[RecoveryCache] = None,
):
    """
    Upload a meeting recording and create its analysis job

    FILE_PATH: Path to the audio/video file
    """
    path = Path(file_path)
    if not path.exists():
        console.print(f"[red]❌ File not found: {file_path}[/red]")
        raise typer.Exit(1)
    if not path.is_file():
        console.print(f"[red]❌ Path is not a file: {file_path}[/red]")
        raise typer.Exit(1)
    if path.stat().st_size == 0:
        console.print(f"[red]❌ File is empty: {file_path}[/red]")
        raise typer.Exit(1)

    file_name = name or path.name
    cache = cache or RecoveryCache()
    entry = PendingUpload(
        file_path=str(path.resolve()),
        file_name=file_name,
        content_type=guess_content_type(path.name),
    )
    cache.save(entry)

    console.print(f"[blue]📤 Uploading:[/blue] {file_name}")
    console.print(f"[blue]📊 Size:[/blue] {path.stat().st_size:,} bytes ({path.stat().st_size / 1024 / 1024:.2f} MB)")

    try:
        result = _run_with_progress(client, entry, cache, max_retries)
    except KeyboardInterrupt:
        console.print(f"[yellow]⏹  Upload was cancelled. Resume later with: insightful resume {entry.id}[/yellow]")
        raise typer.Exit(130)

    _report(result, entry)


def resume_uploads(
    client: ApiClient,
    entry_id: Optional[str] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    cache: Optional[RecoveryCache] = None,
):
    """Retry one cached upload, or all of them when no id is given"""
    cache = cache or RecoveryCache()
    if entry_id:
        entry = cache.get(entry_id)
        if entry is None:
            console.print(f"[red]❌ No pending upload with id {entry_id} (it may have expired)[/red]")
            raise typer.Exit(1)
        entries = [entry]
    else:
        entries = cache.entries()

    if not entries:
        console.print("[green]✅ Nothing to resume.[/green]")
        return

    failures = 0
    try:
        for entry in entries:
            if not entry.file_key and not os.path.exists(entry.file_path):
                console.print(f"[red]❌ {entry.file_name}: source file is gone, dropping entry[/red]")
                cache.remove(entry.id)
                failures += 1
                continue

            console.print(f"[blue]🔁 Resuming:[/blue] {entry.file_name} ({entry.id})")
            if entry.file_key:
                result = upload_with_retry(client, entry, cache=cache, max_retries=max_retries)
            else:
                result = _run_with_progress(client, entry, cache, max_retries)
            if not _report(result, entry, exit_on_failure=False):
                failures += 1
    except KeyboardInterrupt:
        console.print("[yellow]⏹  Resume was cancelled. Unfinished uploads are kept: insightful resume --all[/yellow]")
        raise typer.Exit(130)

    if failures:
        raise typer.Exit(1)


def _report(result: Dict[str, Any], entry: PendingUpload, exit_on_failure: bool = True) -> bool:
    if result["success"]:
        console.print(f"[green]✅ Upload successful![/green]")
        console.print(f"[green]🆔 Job ID:[/green] {result['job_id']}")
        console.print(f"[green]📁 Key:[/green] {result['file_key']}")
        return True

    console.print(f"[red]❌ {result['error']}[/red]")
    console.print(f"[dim]Saved for retry as {entry.id}: insightful resume {entry.id}[/dim]")
    if exit_on_failure:
        raise typer.Exit(1)
    return False
