"""Celery tasks for video processing.

The upload hook only enqueues; the queue itself is drained by
``process_video_queue_task`` (scheduled by beat) or by a long-running
``python -m streamforge.worker``.
"""

import uuid
from typing import Optional

from streamforge.core.celery_app import celery_app


@celery_app.task
def video_uploaded_task(video_id: str, source_path: Optional[str] = None) -> dict:
    """Enqueue processing for a freshly uploaded video.

    Args:
        video_id: UUID of the uploaded video
        source_path: Optional new source file location

    Returns:
        dict: The job that will process the video
    """
    from streamforge.core.database import async_session_maker
    from streamforge.modules.processing.runner import JobRunner
    from streamforge.modules.video.repository import SQLAlchemyVideoRepository
    import asyncio

    async def _enqueue():
        vid = uuid.UUID(video_id)
        if source_path:
            async with async_session_maker() as session:
                await SQLAlchemyVideoRepository(session).set_source_path(vid, source_path)

        job = await JobRunner().submit(vid)
        return {
            "job_id": str(job.id),
            "video_id": video_id,
            "status": job.status,
            "scheduled_at": job.scheduled_at.isoformat(),
        }

    return asyncio.run(_enqueue())


@celery_app.task
def process_video_queue_task() -> dict:
    """Process one batch of due video processing jobs.

    Only one drain runs at a time across all Celery workers; a tick that
    finds another drain in progress does nothing.

    Returns:
        dict: Number of jobs claimed in this run
    """
    from streamforge.core.celery_app import TASK_TIME_MARGIN
    from streamforge.core.redis import single_instance
    from streamforge.modules.processing.runner import JobRunner
    import asyncio

    async def _drain():
        runner = JobRunner()
        lock_timeout = runner.config.timeout + TASK_TIME_MARGIN
        async with single_instance(f"drain:{runner.queue}", timeout=lock_timeout) as acquired:
            if not acquired:
                return None
            return await runner.run_batch()

    processed = asyncio.run(_drain())
    if processed is None:
        return {"processed": 0, "skipped": "another drain is running"}
    return {"processed": processed}
