"""Job Queue Service for video processing with DLQ support.

Owns the unit of work for job transitions: every public method commits,
so that claims and state changes are visible to other workers at once.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from streamforge.core.metrics import DLQ_SIZE, QUEUE_DEPTH
from streamforge.modules.job.models import DLQAlert, Job, JobStatus
from streamforge.modules.job.repository import DLQAlertRepository, JobRepository
from streamforge.modules.job.retry import RetryConfig
from streamforge.modules.job.schemas import DLQAlertInfo, DLQJobInfo, QueueStats

logger = logging.getLogger(__name__)


class JobQueueService:
    """Service for video processing job queue management."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.job_repo = JobRepository(session)
        self.alert_repo = DLQAlertRepository(session)

    # ==================== Enqueue ====================

    async def enqueue_video_job(
        self,
        video_id: uuid.UUID,
        queue: str,
        retry_config: RetryConfig,
        scheduled_at: Optional[datetime] = None,
    ) -> Job:
        """Enqueue processing for a video.

        Enqueueing twice is harmless: an already queued or in-flight job
        for the video is returned instead of creating a second one.
        """
        existing = await self.job_repo.get_active_job_for_video(video_id)
        if existing:
            logger.info(f"Video {video_id} already has active job {existing.id}")
            return existing

        job = await self.job_repo.create_job(
            video_id=video_id,
            queue=queue,
            max_attempts=retry_config.max_attempts,
            timeout_seconds=int(retry_config.timeout),
            scheduled_at=scheduled_at,
        )
        await self.session.commit()
        logger.info(f"Enqueued job {job.id} for video {video_id} on {queue}")
        return job

    # ==================== Attempt lifecycle ====================

    async def claim_next_job(self, queue: str, now: datetime) -> Optional[Job]:
        """Claim the next due job, or None when nothing is due."""
        job = await self.job_repo.claim_next_job(queue, now)
        await self.session.commit()
        return job

    async def complete_job(self, job: Job, result: Optional[dict] = None) -> Job:
        """Mark a job as completed."""
        await self.job_repo.complete_job(job.id, result=result)
        await self.session.commit()
        return job

    async def schedule_retry(
        self,
        job: Job,
        delay: float,
        error: str,
        now: datetime,
    ) -> Job:
        """Requeue a job after a retryable failure, not before ``now + delay``."""
        await self.job_repo.reschedule_job(
            job.id,
            scheduled_at=now + timedelta(seconds=delay),
            error=error,
        )
        await self.session.commit()
        return job

    async def dead_letter(self, job: Job, error: str) -> Optional[DLQAlert]:
        """Move a job to the DLQ and raise its operator alert.

        Returns:
            The new alert, or None if the job was already alerted.
        """
        await self.job_repo.move_to_dlq(
            job.id,
            reason=f"Max attempts ({job.max_attempts}) reached or fatal error: {error}",
            error=error,
        )
        alert = await self._generate_dlq_alert(job)
        await self.session.commit()
        return alert

    async def _generate_dlq_alert(self, job: Job) -> Optional[DLQAlert]:
        existing = await self.alert_repo.get_alert_by_job_id(job.id)
        if existing:
            return None

        alert = await self.alert_repo.create_alert(
            job_id=job.id,
            job_type=job.job_type,
            video_id=job.video_id,
            error_message=job.error,
            attempts=job.attempts,
        )
        await self.job_repo.mark_dlq_alert_sent(job.id)
        return alert

    async def record_notification(self, alert: DLQAlert, channels: list[str]) -> None:
        await self.alert_repo.mark_notification_sent(alert.id, channels)
        await self.session.commit()

    async def get_stale_jobs(self, queue: str, now: datetime) -> list[Job]:
        """Get in-flight jobs left behind by a lost worker."""
        return await self.job_repo.get_stale_processing_jobs(queue, now)

    # ==================== DLQ handling ====================

    async def get_dlq_jobs(self, queue: Optional[str] = None, limit: int = 100) -> list[DLQJobInfo]:
        jobs = await self.job_repo.get_dlq_jobs(queue=queue, limit=limit)
        return [DLQJobInfo.model_validate(job) for job in jobs]

    async def get_unacknowledged_alerts(self, limit: int = 100) -> list[DLQAlertInfo]:
        alerts = await self.alert_repo.get_unacknowledged_alerts(limit)
        return [DLQAlertInfo.model_validate(alert) for alert in alerts]

    async def acknowledge_alert(self, alert_id: uuid.UUID, acknowledged_by: str) -> Optional[DLQAlertInfo]:
        alert = await self.alert_repo.acknowledge_alert(alert_id, acknowledged_by)
        if not alert:
            return None
        await self.session.commit()
        return DLQAlertInfo.model_validate(alert)

    async def requeue_dlq_jobs(self, queue: Optional[str] = None) -> list[Job]:
        """Requeue every dead-lettered job with a fresh attempt budget.

        Existing alerts are dropped so that a new terminal failure alerts
        operators again.
        """
        jobs = await self.job_repo.get_dlq_jobs(queue=queue, limit=10_000)
        requeued = []
        for job in jobs:
            job = await self.job_repo.requeue_job(job.id, reset_attempts=True)
            if job:
                requeued.append(job)
        await self.alert_repo.delete_alerts_for_jobs([job.id for job in requeued])
        await self.session.commit()
        return requeued

    async def purge_dlq(self, queue: Optional[str] = None) -> int:
        """Delete dead-lettered jobs and their alerts."""
        jobs = await self.job_repo.get_dlq_jobs(queue=queue, limit=10_000)
        await self.alert_repo.delete_alerts_for_jobs([job.id for job in jobs])
        removed = await self.job_repo.delete_dlq_jobs(queue)
        await self.session.commit()
        return removed

    # ==================== Stats ====================

    async def get_queue_stats(self, queue: str) -> QueueStats:
        """Get queue statistics and refresh the queue gauges."""
        counts = await self.job_repo.get_job_counts_by_status(queue)
        unacknowledged = await self.alert_repo.get_unacknowledged_count()

        stats = QueueStats(
            queue=queue,
            queued_jobs=counts.get(JobStatus.QUEUED.value, 0),
            processing_jobs=counts.get(JobStatus.PROCESSING.value, 0),
            completed_jobs=counts.get(JobStatus.COMPLETED.value, 0),
            dlq_jobs=counts.get(JobStatus.DLQ.value, 0),
            unacknowledged_alerts=unacknowledged,
        )

        for status in JobStatus:
            QUEUE_DEPTH.labels(queue_name=queue, status=status.value).set(
                counts.get(status.value, 0)
            )
        DLQ_SIZE.labels(queue_name=queue).set(stats.dlq_jobs)
        return stats
