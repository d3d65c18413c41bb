"""Job runner for video processing.

Pulls due jobs from the persisted queue and runs at most ``concurrency``
processing attempts at a time. Each attempt:

* claims the job, then the video (compare-and-swap on both rows)
* runs the processing service under a hard timeout
* settles the outcome: complete, retry later (video back to pending, job
  rescheduled by the backoff schedule), or terminal failure (video failed,
  job dead-lettered, owner and operators notified once)

A video that is already complete, or not pending, turns its job into a
no-op, so delivering the same job twice is harmless.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streamforge.core import database
from streamforge.core.logging import correlation_scope, log_error, log_info, log_warning
from streamforge.core.metrics import JOB_DURATION_SECONDS, JOBS_TOTAL, WORKERS_BUSY
from streamforge.core.tracing import create_span, mark_span_failed
from streamforge.modules.job.models import Job
from streamforge.modules.job.service import JobQueueService
from streamforge.modules.notification.notifier import (
    ProcessingFailureEvent,
    ProcessingFailureNotifier,
)
from streamforge.modules.processing.config import ProcessingConfig
from streamforge.modules.processing.results import ProcessingResult
from streamforge.modules.processing.service import MediaProcessingService
from streamforge.modules.video.repository import SQLAlchemyVideoRepository, VideoRepository

logger = logging.getLogger(__name__)

ProcessorFactory = Callable[[VideoRepository], MediaProcessingService]

LOST_WORKER_ERROR = "Processing attempt timed out: worker stopped responding"


class JobRunner:
    """Long-lived consumer of the video processing queue."""

    def __init__(
        self,
        config: Optional[ProcessingConfig] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        processor_factory: Optional[ProcessorFactory] = None,
        notifier: Optional[ProcessingFailureNotifier] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.config = config or ProcessingConfig.from_settings()
        self.session_factory = session_factory or database.async_session_maker
        self.processor_factory = processor_factory or (
            lambda repository: MediaProcessingService(repository, self.config)
        )
        self.notifier = notifier or ProcessingFailureNotifier()
        self.clock = clock
        self.retry_config = self.config.retry_config()

        self._semaphore = asyncio.Semaphore(self.config.concurrency)
        self._stop_event = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._last_recovery = float("-inf")

    @property
    def queue(self) -> str:
        return self.config.queue

    # ==================== Submission ====================

    async def submit(self, video_id: uuid.UUID) -> Job:
        """Enqueue processing for an uploaded video.

        Returns the existing job if the video is already queued or in
        flight.
        """
        async with self.session_factory() as session:
            return await JobQueueService(session).enqueue_video_job(
                video_id,
                queue=self.queue,
                retry_config=self.retry_config,
                scheduled_at=self.clock(),
            )

    # ==================== Loop ====================

    def stop(self) -> None:
        """Ask ``run`` to finish in-flight attempts and return."""
        self._stop_event.set()

    async def run(self) -> None:
        """Process jobs until ``stop`` is called."""
        self._stop_event.clear()
        await self.recover_stale_jobs()
        logger.info(
            f"Job runner started on {self.queue} with concurrency {self.config.concurrency}"
        )

        while not self._stop_event.is_set():
            await self._semaphore.acquire()
            if self._stop_event.is_set():
                self._semaphore.release()
                break

            try:
                job = await self._claim_next()
            except Exception as e:
                self._semaphore.release()
                log_error(logger, f"Could not claim a job from {self.queue}", exception=e)
                await self._wait(self.config.poll_interval)
                continue

            if job is None:
                self._semaphore.release()
                await self._recover_if_due()
                await self._wait(self.config.poll_interval)
                continue

            task = asyncio.create_task(self._run_claimed(job))
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight job(s)")
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Job runner stopped")

    async def run_once(self) -> int:
        """Process every job that is currently due, then return.

        Returns:
            Number of jobs claimed.
        """
        await self.recover_stale_jobs()
        processed = 0
        while True:
            claimed = await self._run_batch()
            if not claimed:
                return processed
            processed += claimed

    async def run_batch(self) -> int:
        """Run at most ``concurrency`` due jobs side by side, then return.

        Finishes within one attempt timeout plus bookkeeping.

        Returns:
            Number of jobs claimed.
        """
        await self.recover_stale_jobs()
        return await self._run_batch()

    async def _run_batch(self) -> int:
        batch = []
        for _ in range(self.config.concurrency):
            job = await self._claim_next()
            if job is None:
                break
            batch.append(job)
        if batch:
            await asyncio.gather(*(self._run_claimed(job) for job in batch))
        return len(batch)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._semaphore.release()

    async def _recover_if_due(self) -> None:
        # Workers on other hosts can die while this one is idle
        if time.monotonic() - self._last_recovery < self.config.recovery_interval:
            return
        try:
            await self.recover_stale_jobs()
        except Exception as e:
            log_error(logger, f"Stale job recovery failed on {self.queue}", exception=e)

    async def _wait(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    async def _claim_next(self) -> Optional[Job]:
        async with self.session_factory() as session:
            return await JobQueueService(session).claim_next_job(self.queue, self.clock())

    async def _run_claimed(self, job: Job) -> Optional[ProcessingResult]:
        WORKERS_BUSY.labels(queue_name=self.queue).inc()
        try:
            return await self.execute_job(job)
        except Exception as e:
            log_error(logger, f"Job {job.id} crashed outside of processing", exception=e)
            return None
        finally:
            WORKERS_BUSY.labels(queue_name=self.queue).dec()

    # ==================== Attempts ====================

    async def execute_job(self, job: Job) -> Optional[ProcessingResult]:
        """Run one attempt of a claimed job.

        Returns:
            The processing result, or None when the job was a no-op.
        """
        job_id, video_id = job.id, job.video_id
        with correlation_scope(str(job_id)), create_span(
            "video_processing.job",
            {"job.id": str(job_id), "video.id": str(video_id), "job.attempt": job.attempts},
        ):
            async with self.session_factory() as session:
                jobs = JobQueueService(session)
                videos = SQLAlchemyVideoRepository(session)

                job = await jobs.job_repo.get_job_by_id(job_id)
                video = await videos.get_video(video_id)
                if job is None:
                    log_warning(logger, f"Job {job_id} disappeared before processing")
                    return None
                if video is None:
                    log_warning(logger, f"Video {video_id} not found, dropping job {job_id}")
                    await jobs.complete_job(job, {"skipped": "video not found"})
                    JOBS_TOTAL.labels(queue_name=self.queue, outcome="skipped").inc()
                    return None
                if video.is_complete():
                    log_info(logger, f"Video {video_id} already complete, job {job_id} is a no-op")
                    await jobs.complete_job(job, {"skipped": "already complete"})
                    JOBS_TOTAL.labels(queue_name=self.queue, outcome="skipped").inc()
                    return None

                claimed = await videos.claim_for_processing(video_id, job.max_attempts)
                if claimed is None:
                    log_warning(
                        logger,
                        f"Video {video_id} is {video.status}, job {job_id} is a no-op",
                        attempts=video.processing_attempts,
                    )
                    await jobs.complete_job(job, {"skipped": f"video is {video.status}"})
                    JOBS_TOTAL.labels(queue_name=self.queue, outcome="skipped").inc()
                    return None

                log_info(
                    logger,
                    f"Processing video {video_id}, attempt {claimed.processing_attempts}/{job.max_attempts}",
                    video_id=str(video_id),
                )
                result = await self._process(session, videos, claimed, job.timeout_seconds)
                await self._settle(session, job_id, video_id, result)
                return result

    async def _process(
        self,
        session: AsyncSession,
        videos: VideoRepository,
        video,
        timeout: float,
    ) -> ProcessingResult:
        processor = self.processor_factory(videos)
        video_id = video.id
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(processor.process(video), timeout=timeout)
        except asyncio.TimeoutError:
            await session.rollback()
            result = ProcessingResult(
                ok=False,
                error=f"Processing timed out after {int(timeout)}s",
                retryable=True,
            )
        except Exception as e:
            await session.rollback()
            mark_span_failed(str(e), e)
            log_error(logger, f"Unexpected error processing video {video_id}", exception=e)
            result = ProcessingResult(
                ok=False,
                error=f"Unexpected error: {e.__class__.__name__}: {e}",
                retryable=True,
            )
        JOB_DURATION_SECONDS.labels(queue_name=self.queue).observe(time.monotonic() - started)
        return result

    async def _settle(
        self,
        session: AsyncSession,
        job_id: uuid.UUID,
        video_id: uuid.UUID,
        result: ProcessingResult,
    ) -> None:
        """Persist the outcome of an attempt."""
        jobs = JobQueueService(session)
        videos = SQLAlchemyVideoRepository(session)
        job = await jobs.job_repo.get_job_by_id(job_id)
        video = await videos.get_video(video_id)

        if result.ok:
            if not await videos.mark_complete(video_id, result.duration):
                log_warning(logger, f"Video {video_id} left processing before completion was recorded")
            await jobs.complete_job(
                job,
                {
                    "duration": result.duration,
                    "stages": {stage.stage: stage.outcome.value for stage in result.stages},
                },
            )
            JOBS_TOTAL.labels(queue_name=self.queue, outcome="completed").inc()
            log_info(logger, f"Video {video_id} complete", duration=result.duration)
            return

        attempt = video.processing_attempts
        if result.retryable and attempt < job.max_attempts:
            delay = self.retry_config.calculate_delay(attempt)
            await videos.mark_pending(video_id)
            await jobs.schedule_retry(job, delay, result.error, now=self.clock())
            JOBS_TOTAL.labels(queue_name=self.queue, outcome="retried").inc()
            log_warning(
                logger,
                f"Attempt {attempt}/{job.max_attempts} for video {video_id} failed, "
                f"retrying in {delay:.0f}s: {result.error}",
                video_id=str(video_id),
                attempt=attempt,
            )
            return

        await videos.mark_failed(video_id, result.error)
        alert = await jobs.dead_letter(job, result.error)
        JOBS_TOTAL.labels(queue_name=self.queue, outcome="failed").inc()
        log_error(
            logger,
            f"Video {video_id} failed permanently after {attempt} attempt(s): {result.error}",
            video_id=str(video_id),
            attempt=attempt,
        )
        if alert is not None:
            await self._notify(jobs, alert, video, result.error)

    async def _notify(self, jobs: JobQueueService, alert, video, error: str) -> None:
        event = ProcessingFailureEvent(
            video_id=video.id,
            title=video.title,
            error=error,
            attempts=video.processing_attempts,
            owner_email=video.owner_email,
        )
        deliveries = await self.notifier.notify(event)
        await jobs.record_notification(
            alert, list(dict.fromkeys(d.channel for d in deliveries if d.success))
        )

    # ==================== Recovery ====================

    async def recover_stale_jobs(self) -> int:
        """Settle attempts abandoned by a worker that died mid-processing.

        Each one counts as a timed-out attempt.

        Returns:
            Number of jobs recovered.
        """
        self._last_recovery = time.monotonic()
        async with self.session_factory() as session:
            jobs = JobQueueService(session)
            videos = SQLAlchemyVideoRepository(session)
            stale = await jobs.get_stale_jobs(self.queue, self.clock())

            for job in stale:
                video = await videos.get_video(job.video_id)
                log_warning(logger, f"Recovering stale job {job.id} for video {job.video_id}")
                if video is not None and video.is_processing():
                    await self._settle(
                        session,
                        job.id,
                        video.id,
                        ProcessingResult(ok=False, error=LOST_WORKER_ERROR, retryable=True),
                    )
                elif video is not None and video.is_pending():
                    await jobs.schedule_retry(job, 0, LOST_WORKER_ERROR, now=self.clock())
                elif video is not None and video.is_failed():
                    await jobs.dead_letter(job, video.processing_error or LOST_WORKER_ERROR)
                else:
                    await jobs.complete_job(job, {"recovered": True})
            return len(stale)
