"""Tests for the Celery entry points of the processing pipeline.

Celery tasks start their own event loop, so these tests are synchronous and
use a database without pooled connections.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from streamforge.core import database, redis as redis_helpers
from streamforge.core.celery_app import celery_app
from streamforge.core.config import settings
from streamforge.core.database import Base
from streamforge.modules.job.models import JobStatus
from streamforge.modules.job.repository import JobRepository
from streamforge.modules.processing.tasks import process_video_queue_task, video_uploaded_task
from streamforge.modules.video.models import VideoStatus
from streamforge.modules.video.repository import SQLAlchemyVideoRepository


@pytest.fixture
def task_database(tmp_path, monkeypatch):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}", poolclass=NullPool
    )
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    monkeypatch.setattr(database, "async_session_maker", maker)
    yield maker
    asyncio.run(engine.dispose())


class FakeLocks:
    """Stands in for the Redis lock: names in ``held`` are taken by someone else."""

    def __init__(self):
        self.held: set[str] = set()
        self.requested: list[tuple[str, float]] = []

    @asynccontextmanager
    async def single_instance(self, name, timeout):
        self.requested.append((name, timeout))
        yield name not in self.held


@pytest.fixture(autouse=True)
def locks(monkeypatch) -> FakeLocks:
    fake = FakeLocks()
    monkeypatch.setattr(redis_helpers, "single_instance", fake.single_instance)
    return fake


def create_video(maker, source_path: str):
    async def _create():
        async with maker() as session:
            video = await SQLAlchemyVideoRepository(session).create_video(source_path)
            return video.id

    return asyncio.run(_create())


def load_video(maker, video_id):
    async def _load():
        async with maker() as session:
            return await SQLAlchemyVideoRepository(session).get_video(video_id)

    return asyncio.run(_load())


class TestVideoUploadedTask:

    def test_enqueues_once_and_updates_source(self, task_database):
        video_id = create_video(task_database, "/uploads/draft.mp4")

        first = video_uploaded_task(str(video_id), "/uploads/final.mp4")
        second = video_uploaded_task(str(video_id))

        assert first["job_id"] == second["job_id"]
        assert first["video_id"] == str(video_id)
        assert first["status"] == JobStatus.QUEUED.value
        assert load_video(task_database, video_id).source_path == "/uploads/final.mp4"


class TestProcessVideoQueueTask:

    def test_empty_queue(self, task_database):
        assert process_video_queue_task() == {"processed": 0}

    def test_missing_source_fails_without_retry(self, task_database):
        video_id = create_video(task_database, "/nonexistent/upload.mp4")
        job_id = video_uploaded_task(str(video_id))["job_id"]

        assert process_video_queue_task() == {"processed": 1}

        video = load_video(task_database, video_id)
        assert video.status == VideoStatus.FAILED.value
        assert video.processing_attempts == 1
        assert "Source file not found" in video.processing_error

        async def load_job():
            async with task_database() as session:
                jobs = await JobRepository(session).get_dlq_jobs()
                return [str(job.id) for job in jobs]

        assert asyncio.run(load_job()) == [job_id]

    def test_drains_one_batch_per_run(self, task_database, monkeypatch):
        monkeypatch.setattr(settings, "VIDEO_PROCESSING_CONCURRENCY", 1)
        for name in ("a", "b"):
            video_uploaded_task(str(create_video(task_database, f"/nonexistent/{name}.mp4")))

        assert process_video_queue_task() == {"processed": 1}
        assert process_video_queue_task() == {"processed": 1}
        assert process_video_queue_task() == {"processed": 0}

    def test_skips_while_another_drain_runs(self, task_database, locks):
        video_id = create_video(task_database, "/nonexistent/upload.mp4")
        video_uploaded_task(str(video_id))
        locks.held.add(f"drain:{settings.VIDEO_PROCESSING_QUEUE}")

        result = process_video_queue_task()

        assert result["processed"] == 0
        assert "skipped" in result
        assert load_video(task_database, video_id).status == VideoStatus.PENDING.value

    def test_lock_and_time_limit_outlast_an_attempt(self, task_database, locks):
        process_video_queue_task()

        (name, timeout), = locks.requested
        assert name == f"drain:{settings.VIDEO_PROCESSING_QUEUE}"
        assert timeout > settings.VIDEO_PROCESSING_TIMEOUT
        assert celery_app.conf.task_time_limit > settings.VIDEO_PROCESSING_TIMEOUT
