"""Tests for video status transitions and the video repository."""

import uuid
from datetime import datetime, timedelta

import pytest
from hypothesis import given, settings, strategies as st

from streamforge.modules.video.models import VIDEO_TRANSITIONS, VideoStatus, can_transition
from streamforge.modules.video.repository import SQLAlchemyVideoRepository


status_strategy = st.sampled_from(list(VideoStatus))


class TestTransitions:
    """Property tests for the video state machine."""

    @given(current=status_strategy, target=status_strategy)
    @settings(max_examples=100)
    def test_complete_is_terminal(self, current: VideoStatus, target: VideoStatus) -> None:
        """*For any* target, a complete video never changes status."""
        if current == VideoStatus.COMPLETE:
            assert not can_transition(current, target)

    @given(target=status_strategy)
    @settings(max_examples=20)
    def test_only_processing_reaches_outcomes(self, target: VideoStatus) -> None:
        allowed = can_transition(VideoStatus.PENDING, target)
        assert allowed == (target == VideoStatus.PROCESSING)

    def test_processing_outcomes(self) -> None:
        assert VIDEO_TRANSITIONS[VideoStatus.PROCESSING] >= {
            VideoStatus.COMPLETE,
            VideoStatus.PENDING,
            VideoStatus.FAILED,
        }


class TestVideoRepository:

    @pytest.mark.asyncio
    async def test_new_video_is_pending(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4", title="Holiday", owner_email="o@example.com")

        assert video.is_pending()
        assert video.processing_attempts == 0
        assert not video.adaptive_streaming

    @pytest.mark.asyncio
    async def test_claim_moves_to_processing_and_counts_attempt(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4")

        claimed = await repo.claim_for_processing(video.id, max_attempts=3)

        assert claimed.is_processing()
        assert claimed.processing_attempts == 1
        assert await repo.claim_for_processing(video.id, max_attempts=3) is None

    @pytest.mark.asyncio
    async def test_claim_refuses_exhausted_video(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4")
        for _ in range(2):
            await repo.claim_for_processing(video.id, max_attempts=2)
            await repo.mark_pending(video.id)

        assert await repo.claim_for_processing(video.id, max_attempts=2) is None

    @pytest.mark.asyncio
    async def test_claim_is_exclusive_across_sessions(self, session_maker):
        async with session_maker() as session:
            video = await SQLAlchemyVideoRepository(session).create_video("/uploads/a.mp4")

        async with session_maker() as a, session_maker() as b:
            first = await SQLAlchemyVideoRepository(a).claim_for_processing(video.id, 3)
            second = await SQLAlchemyVideoRepository(b).claim_for_processing(video.id, 3)

        assert first is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_mark_complete_records_outputs(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4")
        await repo.claim_for_processing(video.id, 3)

        await repo.record_source_probe(video.id, 93.0, False)
        await repo.record_adaptive_stream(video.id, "/storage/videos/adaptive/x/playlist.m3u8")
        await repo.record_thumbnails(video.id, "thumbnails/x/thumb_2.jpg", ["thumbnails/x/thumb_2.jpg"])
        await repo.record_subtitles(video.id, ["en"])
        assert await repo.mark_complete(video.id, 12.5)

        video = await repo.get_video(video.id)
        assert video.is_complete()
        assert video.processing_duration == 12.5
        assert video.processing_error is None
        assert video.processed_at is not None
        assert video.adaptive_streaming
        assert video.subtitle_languages == ["en"]
        assert video.has_subtitles

    @pytest.mark.asyncio
    async def test_transitions_require_processing(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4")

        assert not await repo.mark_complete(video.id, 1.0)
        assert not await repo.mark_failed(video.id, "boom")
        assert not await repo.mark_pending(video.id)

        await repo.claim_for_processing(video.id, 3)
        assert await repo.mark_failed(video.id, "thumbnails: no frame")
        video = await repo.get_video(video.id)
        assert video.is_failed()
        assert video.processing_error == "thumbnails: no frame"
        assert not await repo.mark_complete(video.id, 1.0)

    @pytest.mark.asyncio
    async def test_reset_to_pending(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4")
        await repo.claim_for_processing(video.id, 3)
        await repo.mark_failed(video.id, "boom")

        assert await repo.reset_to_pending(video.id, reset_attempts=True)
        video = await repo.get_video(video.id)
        assert video.is_pending()
        assert video.processing_attempts == 0
        assert video.processing_error is None

    @pytest.mark.asyncio
    async def test_stuck_and_counts(self, session):
        repo = SQLAlchemyVideoRepository(session)
        stuck = await repo.create_video("/uploads/a.mp4")
        await repo.create_video("/uploads/b.mp4")
        await repo.claim_for_processing(stuck.id, 3)

        later = datetime.utcnow() + timedelta(minutes=1)
        assert [v.id for v in await repo.get_stuck_videos(later)] == [stuck.id]
        assert await repo.get_counts_by_status() == {"pending": 1, "processing": 1}

    @pytest.mark.asyncio
    async def test_set_source_path_only_before_processing(self, session):
        repo = SQLAlchemyVideoRepository(session)
        video = await repo.create_video("/uploads/a.mp4")

        assert await repo.set_source_path(video.id, "/uploads/b.mp4")
        await repo.claim_for_processing(video.id, 3)
        assert not await repo.set_source_path(video.id, "/uploads/c.mp4")
        assert not await repo.set_source_path(uuid.uuid4(), "/uploads/c.mp4")
