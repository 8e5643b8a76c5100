# Celery worker entrypoint - initializes Celery app, registers the job processing task

from celery import Celery
import logging

import httpx

from insightful.core.config import settings

logger = logging.getLogger(__name__)

PROCESS_JOB_TASK = "insightful.process_job"

celery_app = Celery(
    "insightful_worker",
    broker=settings.redis_url,
    backend=settings.redis_url
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    task_time_limit=3600 * 2,  # 2 hour hard limit
    task_soft_time_limit=3600 * 2 - 300,
)


def request_analysis(job) -> dict:
    """
    Hand a job's file to the external analysis service and return its result

    Expected response: {"transcript", "summary", "action_items", "key_decisions"}
    """
    if not settings.analysis_service_url:
        raise RuntimeError("ANALYSIS_SERVICE_URL is not configured")

    payload = {
        "job_id": job.id,
        "file_url": job.file_url,
        "file_key": job.file_key,
        "file_name": job.file_name,
    }
    with httpx.Client(timeout=httpx.Timeout(settings.analysis_timeout_seconds, connect=10.0)) as client:
        response = client.post(settings.analysis_service_url, json=payload)
        response.raise_for_status()
        result = response.json()

    if not isinstance(result, dict):
        raise ValueError("Analysis service returned a non-object response")
    return result


@celery_app.task(bind=True, name=PROCESS_JOB_TASK)
def process_job_task(self, job_id: int):
    """
    Celery task driving one job from PENDING to COMPLETED or FAILED

    Args:
        job_id: MeetingJob ID
    """
    from insightful.core.database import SessionLocal
    from insightful.models import MeetingJob, JobStatus
    from insightful.services import job_service

    db = SessionLocal()

    try:
        job = db.query(MeetingJob).filter(MeetingJob.id == job_id).first()
        if not job:
            logger.warning(f"Job {job_id} not found, nothing to process")
            return {"job_id": job_id, "status": "missing"}

        # Redelivered messages for jobs already picked up are ignored
        if job.status != JobStatus.PENDING:
            logger.info(f"Job {job_id} is {job.status.value}, skipping")
            return {"job_id": job_id, "status": job.status.value}

        job_service.mark_processing(db, job, task_id=self.request.id)
        logger.info(f"Starting analysis for job {job_id}: {job.file_name}")

        result = request_analysis(job)

        job_service.mark_completed(db, job, result)
        logger.info(f"Job {job_id} completed successfully")

        return {"job_id": job_id, "status": JobStatus.COMPLETED.value}

    except Exception as e:
        logger.error(f"Job {job_id} failed: {e}")

        try:
            db.rollback()
            job = db.query(MeetingJob).filter(MeetingJob.id == job_id).first()
            if job and not job.status.is_final:
                job_service.mark_failed(db, job, str(e))
        except Exception as db_error:
            logger.error(f"Failed to update job status: {db_error}")

        raise

    finally:
        db.close()
