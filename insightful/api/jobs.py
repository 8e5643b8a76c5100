# Job routes - list the caller's jobs, job detail, rename, delete, Markdown export

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import quote
import json
import logging

from insightful.core.database import get_db
from insightful.core.security import CurrentUser, get_current_user
from insightful.core.storage import StorageClient, get_storage
from insightful.models import MeetingJob, JobStatus
from insightful.services import job_service, report

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_visible_job(db: Session, job_id: int, user: CurrentUser) -> MeetingJob:
    """Jobs owned by someone else look exactly like missing ones"""
    job = job_service.get_job(db, job_id)
    if not job or not job.is_owned_by(user.id):
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _get_owned_job(db: Session, job_id: int, user: CurrentUser) -> MeetingJob:
    job = job_service.get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    if not job.is_owned_by(user.id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return job


@router.get("/jobs")
def list_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by status: PENDING, PROCESSING, COMPLETED, FAILED"),
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    List the signed-in user's jobs, newest first.
    """
    try:
        jobs = job_service.list_jobs(db, user_id=user.id, status=status, limit=limit, offset=skip)
        return [job_service.serialize_job_summary(job) for job in jobs]
    except Exception as e:
        logger.error(f"Failed to list jobs for user {user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to list jobs: {str(e)}")


@router.get("/job/{job_id}")
def get_job(
    job_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get a job with its analysis result.
    """
    job = _get_visible_job(db, job_id, user)
    return job_service.serialize_job_detail(job)


@router.delete("/job/{job_id}")
def delete_job(
    job_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    """
    Delete a job, its source file and its analysis result.
    """
    job = _get_owned_job(db, job_id, user)

    try:
        job_service.delete_job(db, storage, job)
    except Exception as e:
        logger.error(f"Failed to delete job {job_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete job")

    return {"success": True}


@router.patch("/job/{job_id}/rename")
async def rename_job(
    job_id: int,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Rename a completed job.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON in request body")

    file_name = body.get("file_name") if isinstance(body, dict) else None
    if not file_name or not isinstance(file_name, str):
        raise HTTPException(status_code=400, detail="file_name is required and must be a string")

    trimmed = file_name.strip()
    if not trimmed:
        raise HTTPException(status_code=400, detail="file_name cannot be empty")
    if len(trimmed) > job_service.MAX_FILE_NAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"file_name cannot exceed {job_service.MAX_FILE_NAME_LENGTH} characters",
        )

    job = _get_owned_job(db, job_id, user)

    if job.status != JobStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Only completed jobs can be renamed")

    if not job_service.rename_job(db, job, trimmed):
        return {
            "success": True,
            "message": "No changes needed",
            "job": {"id": job.id, "file_name": job.file_name},
        }

    logger.info(f"Renamed job {job.id}")
    return {
        "success": True,
        "message": "Job renamed successfully",
        "job": {
            "id": job.id,
            "file_name": job.file_name,
            "status": job.status.value,
            "created_at": job.created_at.isoformat() if job.created_at else None,
        },
    }


@router.get("/job/{job_id}/export")
def export_job(
    job_id: int,
    lang: Optional[str] = Query(None, description="Report language: zh or en"),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Download a job's analysis as a Markdown report.
    """
    job = _get_visible_job(db, job_id, user)
    if job.analysis_result is None:
        raise HTTPException(status_code=409, detail="Analysis result not available yet")

    content = report.render_markdown(job, lang)
    filename = report.export_filename(job.file_name, job.id)

    # ASCII fallback plus RFC 5987 form for non-latin names
    ascii_name = filename.encode("ascii", "ignore").decode() or f"meeting-{job.id}.md"
    if ascii_name == ".md":
        ascii_name = f"meeting-{job.id}.md"
    disposition = f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"

    return Response(
        content=content,
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": disposition},
    )
