# Job queue publisher - sends a single "process this job" message per job

import logging

logger = logging.getLogger(__name__)


class JobQueue:
    """Publishes job ids to the Celery worker"""

    def publish(self, job_id: int) -> str:
        """
        Queue a job for processing

        Returns:
            str: Celery task ID
        """
        from insightful.worker import process_job_task

        task = process_job_task.delay(job_id=job_id)
        logger.info(f"Dispatched job {job_id} as task {task.id}")
        return task.id


job_queue = JobQueue()


def get_job_queue() -> JobQueue:
    """Dependency: `queue: JobQueue = Depends(get_job_queue)`"""
    return job_queue
