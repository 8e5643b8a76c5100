# Upload endpoints - presigned uploads, upload completion (job creation + dispatch), direct uploads, object deletes

from fastapi import APIRouter, UploadFile, File, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import mimetypes
import logging

from pydantic import BaseModel

from insightful.core.config import settings
from insightful.core.database import get_db
from insightful.core.security import CurrentUser, get_current_user
from insightful.core.storage import StorageClient, get_storage
from insightful.models import MeetingJob
from insightful.services import job_service
from insightful.services.queue import JobQueue, get_job_queue

router = APIRouter()
logger = logging.getLogger(__name__)


class PresignUploadRequest(BaseModel):
    filename: Optional[str] = None
    content_type: Optional[str] = None


class PresignUploadResponse(BaseModel):
    success: bool
    upload_url: str
    file_key: str
    file_url: Optional[str] = None


class CompleteUploadRequest(BaseModel):
    file_key: Optional[str] = None
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    content_type: Optional[str] = None


class DeleteUploadRequest(BaseModel):
    file_key: Optional[str] = None


def _resolve_content_type(content_type: Optional[str], filename: str) -> str:
    if not content_type or content_type == "application/octet-stream":
        guessed_type, _ = mimetypes.guess_type(filename)
        return guessed_type or "application/octet-stream"
    return content_type


def dispatch_job(db: Session, queue: JobQueue, job: MeetingJob) -> None:
    """
    Publish a freshly created job. On failure the job is marked FAILED
    so it does not sit in PENDING forever.
    """
    try:
        job.task_id = queue.publish(job.id)
        db.commit()
    except Exception as e:
        logger.error(f"Failed to dispatch job {job.id}: {e}", exc_info=True)
        db.rollback()
        job_service.mark_failed(db, job, f"Failed to dispatch job: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to dispatch job: {str(e)}")


@router.post("/upload/presign", response_model=PresignUploadResponse)
async def presign_upload(
    body: PresignUploadRequest,
    user: CurrentUser = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage),
):
    """
    Create a presigned PUT URL to upload directly to object storage (bypasses API data path).
    Client must call /api/upload/complete after uploading to create the job.
    """
    if not body.filename or not body.content_type:
        raise HTTPException(status_code=400, detail="filename and content_type are required")

    file_key = job_service.generate_file_key(user.id, body.filename)
    try:
        upload_url = storage.get_presigned_put_url(object_name=file_key)
    except Exception as e:
        logger.error(f"Failed to presign upload url for {file_key}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create upload url: {str(e)}")

    return {
        "success": True,
        "upload_url": upload_url,
        "file_key": file_key,
        "file_url": job_service.public_url_or_none(storage, file_key),
    }


@router.post("/upload/complete")
async def complete_upload(
    body: CompleteUploadRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    queue: JobQueue = Depends(get_job_queue),
):
    """
    After a client uploads via presigned URL, create the job and queue it for analysis.
    """
    if not body.file_key or not body.file_name:
        raise HTTPException(status_code=400, detail="Missing file_key or file_name")

    # Safety: only allow the caller's own upload prefix
    if not job_service.key_belongs_to_user(body.file_key, user.id):
        raise HTTPException(status_code=403, detail="Forbidden")

    info = storage.get_file_info(body.file_key)
    if not info:
        raise HTTPException(status_code=404, detail="Uploaded object not found in storage")

    content_type = body.content_type or info.get("content_type")
    file_url = body.file_url or job_service.public_url_or_none(storage, body.file_key)

    try:
        job = job_service.create_job(
            db,
            user_id=user.id,
            file_name=body.file_name,
            file_key=body.file_key,
            file_url=file_url,
            content_type=_resolve_content_type(content_type, body.file_name),
        )
    except Exception as e:
        logger.error(f"Failed to create job for {body.file_key}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create job: {str(e)}")

    dispatch_job(db, queue, job)

    return {
        "success": True,
        "message": "Upload complete, job created and dispatched.",
        "job_id": job.id,
    }


@router.post("/upload/direct")
async def direct_upload(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    queue: JobQueue = Depends(get_job_queue),
):
    """
    Upload a file through the API, store it, then create and dispatch its job.

    - **file**: The audio/video file to upload
    """
    request_id = f"upload_{id(file)}"
    logger.info(f"[{request_id}] Starting direct upload - File: {file.filename}")

    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    file.file.seek(0, 2)
    file_size = file.file.tell()
    file.file.seek(0)

    max_bytes = settings.max_direct_upload_mb * 1024 * 1024
    if file_size > max_bytes:
        logger.warning(f"[{request_id}] Rejected - {file_size:,} bytes exceeds {max_bytes:,}")
        raise HTTPException(status_code=413, detail=f"File exceeds {settings.max_direct_upload_mb}MB limit")

    content_type = _resolve_content_type(file.content_type, file.filename)
    file_key = job_service.generate_file_key(user.id, file.filename)

    try:
        storage.upload_file(
            file_obj=file.file,
            object_name=file_key,
            file_size=file_size,
            content_type=content_type,
        )
        logger.info(f"[{request_id}] Stored {file_key} ({file_size:,} bytes)")
    except Exception as e:
        logger.error(f"[{request_id}] Storage upload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

    try:
        job = job_service.create_job(
            db,
            user_id=user.id,
            file_name=file.filename,
            file_key=file_key,
            file_url=job_service.public_url_or_none(storage, file_key),
            content_type=content_type,
        )
    except Exception as e:
        logger.error(f"[{request_id}] Failed to create job: {e}", exc_info=True)
        # Don't leave an orphaned object behind
        try:
            storage.delete_file(file_key)
        except Exception as cleanup_error:
            logger.error(f"[{request_id}] Cleanup of {file_key} failed: {cleanup_error}")
        raise HTTPException(status_code=500, detail=f"Failed to create job: {str(e)}")

    dispatch_job(db, queue, job)

    return {
        "success": True,
        "job_id": job.id,
        "status": job.status.value,
        "file_name": job.file_name,
        "file_url": job.file_url,
    }


@router.post("/upload/delete")
async def delete_upload(
    body: DeleteUploadRequest,
    user: CurrentUser = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage),
):
    """
    Delete an uploaded object that never became a job (e.g. a cancelled upload).
    """
    if not body.file_key:
        raise HTTPException(status_code=400, detail="Missing file_key parameter")

    if not job_service.key_belongs_to_user(body.file_key, user.id):
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        storage.delete_file(body.file_key)
    except Exception as e:
        logger.error(f"Failed to delete {body.file_key}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to delete file: {str(e)}")

    return {"success": True}
