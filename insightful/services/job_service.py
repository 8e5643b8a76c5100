# Job operations - object keys, create/list/get/rename/delete jobs, lifecycle transitions

from typing import List, Dict, Optional, Any
from sqlalchemy.orm import Session
import uuid
import re
import os
import time
from datetime import datetime, timezone
import logging

from insightful.core.storage import StorageClient, StorageError
from insightful.models import MeetingJob, JobStatus, AnalysisResult

logger = logging.getLogger(__name__)

MAX_FILE_NAME_LENGTH = 100
RECORDING_PREFIX = "recording_"


class JobTransitionError(Exception):
    """Raised when a lifecycle transition is not allowed from the job's current status"""


def user_prefix(user_id: str) -> str:
    return f"uploads/{user_id}/"


def generate_file_key(user_id: str, filename: str) -> str:
    """
    Generate a unique S3 key for an upload, grouped by user

    Browser recordings (``recording_*``) keep their name behind a millisecond
    timestamp; anything else gets a UUID with the original extension.

    Args:
        user_id: Owner of the upload
        filename: Original filename

    Returns:
        str: Unique S3 object key
    """
    if filename.startswith(RECORDING_PREFIX):
        safe_name = re.sub(r"[\\/]+", "_", filename)
        unique_name = f"{int(time.time() * 1000)}_{safe_name}"
    else:
        _, ext = os.path.splitext(filename)
        unique_name = f"{uuid.uuid4()}{ext}"

    return f"{user_prefix(user_id)}{unique_name}"


def key_belongs_to_user(file_key: str, user_id: str) -> bool:
    return file_key.startswith(user_prefix(user_id)) and ".." not in file_key.split("/")


def public_url_or_none(storage: StorageClient, file_key: str) -> Optional[str]:
    try:
        return storage.get_public_url(file_key)
    except StorageError as e:
        logger.warning(f"No public URL for {file_key}: {e}")
        return None


def create_job(
    db: Session,
    user_id: str,
    file_name: str,
    file_key: Optional[str],
    file_url: Optional[str] = None,
    content_type: Optional[str] = None,
) -> MeetingJob:
    job = MeetingJob(
        user_id=user_id,
        file_name=file_name,
        file_key=file_key,
        file_url=file_url,
        content_type=content_type,
        status=JobStatus.PENDING,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"Created job {job.id} for user {user_id} ({file_name})")
    return job


def list_jobs(
    db: Session,
    user_id: str,
    status: Optional[JobStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[MeetingJob]:
    """
    List a user's jobs, newest first

    Args:
        db: Database session
        user_id: Owner filter
        status: Optional status filter
        limit: Maximum number of results
        offset: Pagination offset
    """
    query = db.query(MeetingJob).filter(MeetingJob.user_id == user_id)

    if status is not None:
        query = query.filter(MeetingJob.status == status)

    return (
        query.order_by(MeetingJob.created_at.desc(), MeetingJob.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_job(db: Session, job_id: int) -> Optional[MeetingJob]:
    return db.query(MeetingJob).filter(MeetingJob.id == job_id).first()


def delete_job(db: Session, storage: StorageClient, job: MeetingJob) -> None:
    """
    Delete a job's source object and its database row

    The storage delete is best effort; the row (and its analysis result)
    is removed regardless.
    """
    if job.file_key:
        try:
            storage.delete_file(job.file_key)
        except Exception as e:
            logger.error(f"Failed to delete object {job.file_key} for job {job.id}: {e}")

    db.delete(job)
    db.commit()
    logger.info(f"Deleted job {job.id}")


def rename_job(db: Session, job: MeetingJob, file_name: str) -> bool:
    """
    Rename a job. Returns False when the name is unchanged.
    """
    if job.file_name == file_name:
        return False

    job.file_name = file_name
    db.commit()
    db.refresh(job)
    return True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mark_processing(db: Session, job: MeetingJob, task_id: Optional[str] = None) -> MeetingJob:
    if job.status != JobStatus.PENDING:
        raise JobTransitionError(f"Job {job.id} is {job.status.value}, expected PENDING")

    job.status = JobStatus.PROCESSING
    job.started_at = _utcnow()
    if task_id:
        job.task_id = task_id
    db.commit()
    return job


def mark_completed(db: Session, job: MeetingJob, result: Dict[str, Any]) -> MeetingJob:
    if job.status != JobStatus.PROCESSING:
        raise JobTransitionError(f"Job {job.id} is {job.status.value}, expected PROCESSING")

    analysis = job.analysis_result
    if analysis is None:
        analysis = AnalysisResult(job_id=job.id)
        job.analysis_result = analysis

    analysis.transcript = result.get("transcript")
    analysis.summary = result.get("summary")
    analysis.action_items = result.get("action_items") or []
    analysis.key_decisions = result.get("key_decisions") or []

    job.status = JobStatus.COMPLETED
    job.error_message = None
    job.completed_at = _utcnow()
    db.commit()
    return job


def mark_failed(db: Session, job: MeetingJob, error_message: str) -> MeetingJob:
    if job.status.is_final:
        raise JobTransitionError(f"Job {job.id} is already {job.status.value}")

    job.status = JobStatus.FAILED
    job.error_message = error_message
    job.completed_at = _utcnow()
    db.commit()
    return job


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_job_summary(job: MeetingJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "file_name": job.file_name,
        "file_url": job.file_url,
        "status": job.status.value,
        "created_at": _isoformat(job.created_at),
    }


def serialize_analysis(analysis: Optional[AnalysisResult]) -> Optional[Dict[str, Any]]:
    if analysis is None:
        return None
    return {
        "id": analysis.id,
        "job_id": analysis.job_id,
        "transcript": analysis.transcript,
        "summary": analysis.summary,
        "action_items": analysis.action_items or [],
        "key_decisions": analysis.key_decisions or [],
    }


def serialize_job_detail(job: MeetingJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "user_id": job.user_id,
        "file_name": job.file_name,
        "file_key": job.file_key,
        "file_url": job.file_url,
        "content_type": job.content_type,
        "status": job.status.value,
        "error_message": job.error_message,
        "created_at": _isoformat(job.created_at),
        "updated_at": _isoformat(job.updated_at),
        "started_at": _isoformat(job.started_at),
        "completed_at": _isoformat(job.completed_at),
        "analysis_result": serialize_analysis(job.analysis_result),
    }
