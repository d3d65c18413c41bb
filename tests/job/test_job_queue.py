"""Tests for the persisted job queue and its dead-letter handling."""

import uuid
from datetime import datetime, timedelta

import pytest

from streamforge.modules.job.models import JobStatus
from streamforge.modules.job.retry import RetryConfig
from streamforge.modules.job.service import JobQueueService

QUEUE = "video-processing"
NOW = datetime(2026, 1, 1, 12, 0, 0)


async def _enqueue(service: JobQueueService, video_id=None, scheduled_at=NOW):
    return await service.enqueue_video_job(
        video_id or uuid.uuid4(),
        queue=QUEUE,
        retry_config=RetryConfig(),
        scheduled_at=scheduled_at,
    )


class TestEnqueue:

    @pytest.mark.asyncio
    async def test_enqueue_is_idempotent_while_active(self, session):
        service = JobQueueService(session)
        video_id = uuid.uuid4()

        first = await _enqueue(service, video_id)
        second = await _enqueue(service, video_id)

        assert first.id == second.id
        assert first.status == JobStatus.QUEUED.value
        assert first.max_attempts == 3
        assert first.timeout_seconds == 3600

    @pytest.mark.asyncio
    async def test_new_job_after_completion(self, session):
        service = JobQueueService(session)
        video_id = uuid.uuid4()

        first = await _enqueue(service, video_id)
        await service.complete_job(first, {"ok": True})
        second = await _enqueue(service, video_id)

        assert second.id != first.id


class TestClaim:

    @pytest.mark.asyncio
    async def test_claim_respects_not_before_time(self, session):
        service = JobQueueService(session)
        await _enqueue(service, scheduled_at=NOW + timedelta(seconds=60))

        assert await service.claim_next_job(QUEUE, NOW) is None
        claimed = await service.claim_next_job(QUEUE, NOW + timedelta(seconds=60))

        assert claimed is not None
        assert claimed.status == JobStatus.PROCESSING.value
        assert claimed.attempts == 1
        assert claimed.started_at == NOW + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_job_is_claimed_once(self, session_maker):
        async with session_maker() as session:
            job = await _enqueue(JobQueueService(session))

        async with session_maker() as a, session_maker() as b:
            first = await JobQueueService(a).claim_next_job(QUEUE, NOW)
            second = await JobQueueService(b).claim_next_job(QUEUE, NOW)

        assert first is not None and first.id == job.id
        assert second is None

    @pytest.mark.asyncio
    async def test_claims_oldest_due_job_first(self, session):
        service = JobQueueService(session)
        late = await _enqueue(service, scheduled_at=NOW - timedelta(seconds=10))
        early = await _enqueue(service, scheduled_at=NOW - timedelta(seconds=20))

        assert (await service.claim_next_job(QUEUE, NOW)).id == early.id
        assert (await service.claim_next_job(QUEUE, NOW)).id == late.id

    @pytest.mark.asyncio
    async def test_other_queues_are_ignored(self, session):
        service = JobQueueService(session)
        await _enqueue(service)

        assert await service.claim_next_job("other", NOW) is None


class TestRetryAndDeadLetter:

    @pytest.mark.asyncio
    async def test_schedule_retry_requeues_with_delay(self, session):
        service = JobQueueService(session)
        await _enqueue(service)
        job = await service.claim_next_job(QUEUE, NOW)

        await service.schedule_retry(job, 300, "encoder crashed", now=NOW)
        job = await service.job_repo.get_job_by_id(job.id)

        assert job.status == JobStatus.QUEUED.value
        assert job.scheduled_at == NOW + timedelta(seconds=300)
        assert job.error == "encoder crashed"
        assert await service.claim_next_job(QUEUE, NOW + timedelta(seconds=299)) is None
        assert await service.claim_next_job(QUEUE, NOW + timedelta(seconds=300)) is not None

    @pytest.mark.asyncio
    async def test_dead_letter_alerts_once(self, session):
        service = JobQueueService(session)
        video_id = uuid.uuid4()
        await _enqueue(service, video_id)
        job = await service.claim_next_job(QUEUE, NOW)

        alert = await service.dead_letter(job, "source: file not found")
        again = await service.dead_letter(job, "source: file not found")

        assert alert is not None
        assert again is None
        assert alert.video_id == video_id
        assert alert.error_message == "source: file not found"
        assert alert.attempts == 1

        dlq = await service.get_dlq_jobs(QUEUE)
        assert [j.id for j in dlq] == [job.id]
        assert dlq[0].dlq_alert_sent

        await service.record_notification(alert, ["email", "slack"])
        stored = await service.alert_repo.get_alert_by_job_id(job.id)
        assert stored.notification_sent
        assert stored.notification_channels == ["email", "slack"]

    @pytest.mark.asyncio
    async def test_acknowledge_alert(self, session):
        service = JobQueueService(session)
        await _enqueue(service)
        job = await service.claim_next_job(QUEUE, NOW)
        alert = await service.dead_letter(job, "boom")

        assert [a.id for a in await service.get_unacknowledged_alerts()] == [alert.id]

        acknowledged = await service.acknowledge_alert(alert.id, "ops@example.com")

        assert acknowledged.acknowledged
        assert await service.get_unacknowledged_alerts() == []
        assert await service.acknowledge_alert(uuid.uuid4(), "ops@example.com") is None

    @pytest.mark.asyncio
    async def test_requeue_dlq_resets_attempts_and_alerts(self, session):
        service = JobQueueService(session)
        await _enqueue(service)
        job = await service.claim_next_job(QUEUE, NOW)
        await service.dead_letter(job, "boom")

        requeued = await service.requeue_dlq_jobs(QUEUE)

        assert [j.id for j in requeued] == [job.id]
        job = await service.job_repo.get_job_by_id(job.id)
        assert job.status == JobStatus.QUEUED.value
        assert job.attempts == 0
        assert await service.alert_repo.get_alert_by_job_id(job.id) is None

    @pytest.mark.asyncio
    async def test_purge_dlq(self, session):
        service = JobQueueService(session)
        await _enqueue(service)
        job = await service.claim_next_job(QUEUE, NOW)
        await service.dead_letter(job, "boom")

        assert await service.purge_dlq(QUEUE) == 1
        assert await service.get_dlq_jobs(QUEUE) == []

    @pytest.mark.asyncio
    async def test_stale_jobs_outlived_their_timeout(self, session):
        service = JobQueueService(session)
        await _enqueue(service)
        job = await service.claim_next_job(QUEUE, NOW)

        assert await service.get_stale_jobs(QUEUE, NOW + timedelta(seconds=3600)) == []
        stale = await service.get_stale_jobs(QUEUE, NOW + timedelta(seconds=3601))
        assert [j.id for j in stale] == [job.id]

    @pytest.mark.asyncio
    async def test_queue_stats(self, session):
        service = JobQueueService(session)
        await _enqueue(service)
        await _enqueue(service)
        job = await service.claim_next_job(QUEUE, NOW)
        await service.dead_letter(job, "boom")

        stats = await service.get_queue_stats(QUEUE)

        assert stats.queued_jobs == 1
        assert stats.dlq_jobs == 1
        assert stats.unacknowledged_alerts == 1
        assert stats.total_jobs == 2
