"""Tests for the operator queue monitor."""

from datetime import datetime, timedelta

import pytest

from streamforge.modules.job.models import JobStatus
from streamforge.modules.job.service import JobQueueService
from streamforge.modules.processing.config import ProcessingConfig
from streamforge.modules.processing.monitor import QueueMonitorService
from streamforge.modules.video.models import VideoStatus
from streamforge.modules.video.repository import SQLAlchemyVideoRepository


@pytest.fixture
def config(storage) -> ProcessingConfig:
    return ProcessingConfig(media_root=storage.media_root, stuck_minutes=30)


async def fail_video(session, config, video_id):
    """Drive a video through one attempt to a terminal failure."""
    jobs = JobQueueService(session)
    videos = SQLAlchemyVideoRepository(session)
    await jobs.enqueue_video_job(video_id, config.queue, config.retry_config())
    job = await jobs.claim_next_job(config.queue, datetime.utcnow())
    await videos.claim_for_processing(video_id, config.max_attempts)
    await videos.mark_failed(video_id, "source: Source file not found")
    await jobs.dead_letter(job, "source: Source file not found")


class TestQueueMonitor:

    @pytest.mark.asyncio
    async def test_overview(self, session, config):
        videos = SQLAlchemyVideoRepository(session)
        await videos.create_video("/uploads/a.mp4")
        failed = await videos.create_video("/uploads/b.mp4")
        await fail_video(session, config, failed.id)

        overview = await QueueMonitorService(session, config).get_overview()

        assert overview.videos.pending == 1
        assert overview.videos.failed == 1
        assert overview.jobs.dlq_jobs == 1
        assert overview.average_duration is None

    @pytest.mark.asyncio
    async def test_reset_stuck_videos(self, session, config):
        videos = SQLAlchemyVideoRepository(session)
        jobs = JobQueueService(session)
        video = await videos.create_video("/uploads/a.mp4")
        await jobs.enqueue_video_job(video.id, config.queue, config.retry_config())
        await jobs.claim_next_job(config.queue, datetime.utcnow())
        await videos.claim_for_processing(video.id, config.max_attempts)

        later = datetime.utcnow() + timedelta(minutes=31)
        monitor = QueueMonitorService(session, config, clock=lambda: later)
        assert [v.id for v in await monitor.find_stuck_videos()] == [video.id]
        assert await QueueMonitorService(session, config).find_stuck_videos() == []

        assert await monitor.reset_stuck_videos() == [video.id]

        video = await videos.get_video(video.id)
        job = await jobs.job_repo.get_active_job_for_video(video.id)
        assert video.status == VideoStatus.PENDING.value
        assert video.processing_attempts == 1
        assert job.status == JobStatus.QUEUED.value
        assert job.scheduled_at == later

    @pytest.mark.asyncio
    async def test_retry_failed_videos(self, session, config):
        videos = SQLAlchemyVideoRepository(session)
        video = await videos.create_video("/uploads/a.mp4")
        await fail_video(session, config, video.id)

        monitor = QueueMonitorService(session, config)
        assert await monitor.retry_failed_videos() == [video.id]

        jobs = JobQueueService(session)
        video = await videos.get_video(video.id)
        job = await jobs.job_repo.get_active_job_for_video(video.id)
        assert video.status == VideoStatus.PENDING.value
        assert video.processing_attempts == 0
        assert job.status == JobStatus.QUEUED.value
        assert job.attempts == 0
        assert (await jobs.get_queue_stats(config.queue)).dlq_jobs == 0

    @pytest.mark.asyncio
    async def test_clear_failed_jobs(self, session, config):
        videos = SQLAlchemyVideoRepository(session)
        video = await videos.create_video("/uploads/a.mp4")
        await fail_video(session, config, video.id)

        monitor = QueueMonitorService(session, config)
        assert await monitor.clear_failed_jobs() == 1

        video = await videos.get_video(video.id)
        assert video.status == VideoStatus.FAILED.value
        assert (await monitor.get_overview()).jobs.dlq_jobs == 0
