"""Operator view of the video processing queue.

Backs ``scripts/monitor_video_processing.py``.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from streamforge.core.logging import log_info, log_warning
from streamforge.modules.job.schemas import QueueStats
from streamforge.modules.job.service import JobQueueService
from streamforge.modules.processing.config import ProcessingConfig
from streamforge.modules.video.repository import SQLAlchemyVideoRepository
from streamforge.modules.video.schemas import VideoProcessingInfo, VideoStatusCounts

logger = logging.getLogger(__name__)

OPERATOR_RESET_ERROR = "Reset by operator after being stuck in processing"


@dataclass
class ProcessingOverview:
    videos: VideoStatusCounts
    jobs: QueueStats
    average_duration: Optional[float] = None
    generated_at: datetime = field(default_factory=datetime.utcnow)


class QueueMonitorService:
    """Stats and recovery actions over videos and their jobs."""

    def __init__(
        self,
        session: AsyncSession,
        config: Optional[ProcessingConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.config = config or ProcessingConfig.from_settings()
        self.clock = clock
        self.videos = SQLAlchemyVideoRepository(session)
        self.jobs = JobQueueService(session)

    async def get_overview(self) -> ProcessingOverview:
        counts = await self.videos.get_counts_by_status()
        return ProcessingOverview(
            videos=VideoStatusCounts.from_counts(counts),
            jobs=await self.jobs.get_queue_stats(self.config.queue),
            average_duration=await self.videos.get_average_processing_duration(),
            generated_at=self.clock(),
        )

    async def find_stuck_videos(self, minutes: Optional[int] = None) -> list[VideoProcessingInfo]:
        """Videos that have been processing for longer than ``minutes``."""
        threshold = self.clock() - timedelta(minutes=minutes or self.config.stuck_minutes)
        stuck = await self.videos.get_stuck_videos(threshold)
        return [VideoProcessingInfo.model_validate(video) for video in stuck]

    async def reset_stuck_videos(self, minutes: Optional[int] = None) -> list[uuid.UUID]:
        """Return stuck videos to pending and make their jobs due now.

        The attempt counter is kept unless it is already exhausted.
        """
        reset = []
        for info in await self.find_stuck_videos(minutes):
            exhausted = info.processing_attempts >= self.config.max_attempts
            if not await self.videos.reset_to_pending(info.id, reset_attempts=exhausted):
                continue

            job = await self.jobs.job_repo.get_active_job_for_video(info.id)
            if job is not None:
                await self.jobs.schedule_retry(job, 0, OPERATOR_RESET_ERROR, now=self.clock())
            else:
                await self._enqueue(info.id)
            log_warning(logger, f"Reset stuck video {info.id} to pending", video_id=str(info.id))
            reset.append(info.id)
        return reset

    async def retry_failed_videos(self) -> list[uuid.UUID]:
        """Give every failed video a fresh attempt budget and requeue it."""
        failed = await self.videos.get_failed_videos(limit=10_000)
        for video in failed:
            await self.videos.reset_to_pending(video.id, reset_attempts=True)

        await self.jobs.requeue_dlq_jobs(self.config.queue)
        for video in failed:
            await self._enqueue(video.id)

        ids = [video.id for video in failed]
        log_info(logger, f"Requeued {len(ids)} failed video(s)")
        return ids

    async def clear_failed_jobs(self) -> int:
        """Delete dead-lettered jobs. Failed videos stay failed."""
        removed = await self.jobs.purge_dlq(self.config.queue)
        log_info(logger, f"Purged {removed} dead-lettered job(s)")
        return removed

    async def _enqueue(self, video_id: uuid.UUID) -> None:
        await self.jobs.enqueue_video_job(
            video_id,
            queue=self.config.queue,
            retry_config=self.config.retry_config(),
            scheduled_at=self.clock(),
        )
