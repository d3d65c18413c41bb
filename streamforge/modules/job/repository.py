"""Repository for Job Queue database operations."""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from streamforge.modules.job.models import DLQAlert, Job, JobStatus, JobType

# Number of due jobs inspected per claim attempt
CLAIM_CANDIDATES = 10


class JobRepository:
    """Repository for Job database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== Job CRUD ====================

    async def create_job(
        self,
        video_id: uuid.UUID,
        queue: str,
        max_attempts: int = 3,
        timeout_seconds: int = 3600,
        scheduled_at: Optional[datetime] = None,
    ) -> Job:
        """Create a new queued job for a video."""
        job = Job(
            job_type=JobType.VIDEO_PROCESSING.value,
            video_id=video_id,
            queue=queue,
            max_attempts=max_attempts,
            timeout_seconds=timeout_seconds,
            scheduled_at=scheduled_at or datetime.utcnow(),
            status=JobStatus.QUEUED.value,
            attempts=0,
        )
        self.session.add(job)
        await self.session.flush()
        return job

    async def get_job_by_id(self, job_id: uuid.UUID) -> Optional[Job]:
        """Get job by ID."""
        query = select(Job).where(Job.id == job_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def _reload(self, job_id: uuid.UUID) -> Optional[Job]:
        query = (
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_active_job_for_video(self, video_id: uuid.UUID) -> Optional[Job]:
        """Get the queued or in-flight job of a video, if any."""
        query = (
            select(Job)
            .where(
                and_(
                    Job.video_id == video_id,
                    Job.status.in_([JobStatus.QUEUED.value, JobStatus.PROCESSING.value]),
                )
            )
            .order_by(desc(Job.created_at))
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_latest_job_for_video(self, video_id: uuid.UUID) -> Optional[Job]:
        query = (
            select(Job)
            .where(Job.video_id == video_id)
            .order_by(desc(Job.created_at))
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    # ==================== Queue Operations ====================

    async def claim_next_job(self, queue: str, now: datetime) -> Optional[Job]:
        """Claim the next due job with a compare-and-swap on its status.

        A job another worker claimed between the select and the update is
        skipped, so a job is never handed out twice.
        """
        query = (
            select(Job.id)
            .where(
                and_(
                    Job.queue == queue,
                    Job.status == JobStatus.QUEUED.value,
                    Job.scheduled_at <= now,
                )
            )
            .order_by(Job.scheduled_at, Job.created_at)
            .limit(CLAIM_CANDIDATES)
        )
        result = await self.session.execute(query)
        candidate_ids = list(result.scalars().all())

        for job_id in candidate_ids:
            stmt = (
                update(Job)
                .where(
                    and_(
                        Job.id == job_id,
                        Job.status == JobStatus.QUEUED.value,
                        Job.scheduled_at <= now,
                    )
                )
                .values(
                    status=JobStatus.PROCESSING.value,
                    started_at=now,
                    attempts=Job.attempts + 1,
                )
                .execution_options(synchronize_session=False)
            )
            claimed = await self.session.execute(stmt)
            if claimed.rowcount == 1:
                await self.session.flush()
                return await self._reload(job_id)
        return None

    async def get_stale_processing_jobs(self, queue: str, now: datetime) -> list[Job]:
        """Get in-flight jobs whose attempt outlived its timeout."""
        query = select(Job).where(
            and_(
                Job.queue == queue,
                Job.status == JobStatus.PROCESSING.value,
                Job.started_at.isnot(None),
            )
        )
        result = await self.session.execute(query)
        return [
            job for job in result.scalars().all()
            if job.started_at + timedelta(seconds=job.timeout_seconds) < now
        ]

    async def complete_job(
        self,
        job_id: uuid.UUID,
        result: Optional[dict] = None,
    ) -> Optional[Job]:
        """Mark a job as completed."""
        job = await self.get_job_by_id(job_id)
        if not job:
            return None

        job.status = JobStatus.COMPLETED.value
        job.completed_at = datetime.utcnow()
        job.error = None
        if result is not None:
            job.result = result

        await self.session.flush()
        return job

    async def reschedule_job(
        self,
        job_id: uuid.UUID,
        scheduled_at: datetime,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """Put a job back in the queue, not to be claimed before ``scheduled_at``."""
        job = await self.get_job_by_id(job_id)
        if not job:
            return None

        job.status = JobStatus.QUEUED.value
        job.scheduled_at = scheduled_at
        job.started_at = None
        if error is not None:
            job.error = error

        await self.session.flush()
        return job

    # ==================== DLQ Operations ====================

    async def move_to_dlq(
        self,
        job_id: uuid.UUID,
        reason: str,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """Move job to dead letter queue."""
        job = await self.get_job_by_id(job_id)
        if not job:
            return None

        now = datetime.utcnow()
        job.status = JobStatus.DLQ.value
        job.moved_to_dlq_at = now
        job.dlq_reason = reason[:500]
        job.completed_at = now
        if error is not None:
            job.error = error

        await self.session.flush()
        return job

    async def get_dlq_jobs(
        self,
        queue: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Job]:
        """Get jobs in dead letter queue, most recent first."""
        conditions = [Job.status == JobStatus.DLQ.value]
        if queue:
            conditions.append(Job.queue == queue)

        query = (
            select(Job)
            .where(and_(*conditions))
            .order_by(desc(Job.moved_to_dlq_at))
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def mark_dlq_alert_sent(self, job_id: uuid.UUID) -> Optional[Job]:
        """Mark that DLQ alert has been sent for a job."""
        job = await self.get_job_by_id(job_id)
        if not job:
            return None

        job.dlq_alert_sent = True
        job.dlq_alert_sent_at = datetime.utcnow()

        await self.session.flush()
        return job

    async def delete_dlq_jobs(self, queue: Optional[str] = None) -> int:
        """Delete dead-lettered jobs. Returns the number removed."""
        conditions = [Job.status == JobStatus.DLQ.value]
        if queue:
            conditions.append(Job.queue == queue)

        result = await self.session.execute(delete(Job).where(and_(*conditions)))
        await self.session.flush()
        return result.rowcount or 0

    # ==================== Requeue Operations ====================

    async def requeue_job(
        self,
        job_id: uuid.UUID,
        reset_attempts: bool = True,
    ) -> Optional[Job]:
        """Requeue a job for immediate processing."""
        job = await self.get_job_by_id(job_id)
        if not job:
            return None

        job.status = JobStatus.QUEUED.value
        job.scheduled_at = datetime.utcnow()
        job.started_at = None
        job.completed_at = None
        job.error = None
        job.moved_to_dlq_at = None
        job.dlq_reason = None
        job.dlq_alert_sent = False
        job.dlq_alert_sent_at = None

        if reset_attempts:
            job.attempts = 0

        await self.session.flush()
        return job

    # ==================== Statistics ====================

    async def get_job_counts_by_status(self, queue: Optional[str] = None) -> dict[str, int]:
        """Get job counts grouped by status."""
        query = select(Job.status, func.count(Job.id)).group_by(Job.status)
        if queue:
            query = query.where(Job.queue == queue)
        result = await self.session.execute(query)
        return {row[0]: row[1] for row in result.all()}


class DLQAlertRepository:
    """Repository for DLQ Alert database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_alert(
        self,
        job_id: uuid.UUID,
        job_type: str,
        video_id: Optional[uuid.UUID] = None,
        error_message: Optional[str] = None,
        attempts: int = 0,
    ) -> DLQAlert:
        """Create a DLQ alert."""
        alert = DLQAlert(
            job_id=job_id,
            video_id=video_id,
            job_type=job_type,
            error_message=error_message,
            attempts=attempts,
        )
        self.session.add(alert)
        await self.session.flush()
        return alert

    async def get_alert_by_id(self, alert_id: uuid.UUID) -> Optional[DLQAlert]:
        query = select(DLQAlert).where(DLQAlert.id == alert_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_alert_by_job_id(self, job_id: uuid.UUID) -> Optional[DLQAlert]:
        """Get alert by job ID."""
        query = select(DLQAlert).where(DLQAlert.job_id == job_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def acknowledge_alert(
        self,
        alert_id: uuid.UUID,
        acknowledged_by: str,
    ) -> Optional[DLQAlert]:
        """Acknowledge a DLQ alert."""
        alert = await self.get_alert_by_id(alert_id)
        if not alert:
            return None

        alert.acknowledged = True
        alert.acknowledged_by = acknowledged_by
        alert.acknowledged_at = datetime.utcnow()

        await self.session.flush()
        return alert

    async def get_unacknowledged_alerts(self, limit: int = 100) -> list[DLQAlert]:
        query = (
            select(DLQAlert)
            .where(DLQAlert.acknowledged == False)  # noqa: E712
            .order_by(desc(DLQAlert.created_at))
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_unacknowledged_count(self) -> int:
        query = select(func.count(DLQAlert.id)).where(DLQAlert.acknowledged == False)  # noqa: E712
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def mark_notification_sent(
        self,
        alert_id: uuid.UUID,
        channels: list[str],
    ) -> Optional[DLQAlert]:
        """Record which channels the failure notification went out on."""
        alert = await self.get_alert_by_id(alert_id)
        if not alert:
            return None

        alert.notification_sent = bool(channels)
        alert.notification_channels = channels

        await self.session.flush()
        return alert

    async def delete_alerts_for_jobs(self, job_ids: list[uuid.UUID]) -> int:
        if not job_ids:
            return 0
        result = await self.session.execute(
            delete(DLQAlert).where(DLQAlert.job_id.in_(job_ids))
        )
        await self.session.flush()
        return result.rowcount or 0
