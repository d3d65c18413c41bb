"""Repository for Video persistence.

``VideoRepository`` is the contract the processing service and job runner
depend on. ``SQLAlchemyVideoRepository`` implements it on an
``AsyncSession`` and commits after every mutation, so that progress made
by one processing stage survives a failure in a later one.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from streamforge.modules.video.models import Video, VideoStatus


class VideoRepository(ABC):
    """Persistence operations needed to process a video."""

    @abstractmethod
    async def get_video(self, video_id: uuid.UUID) -> Optional[Video]:
        """Get video by ID."""

    @abstractmethod
    async def claim_for_processing(self, video_id: uuid.UUID, max_attempts: int) -> Optional[Video]:
        """Atomically move a pending video to processing.

        The claim only succeeds while the video is pending and has attempts
        left; ``processing_attempts`` is incremented as part of the claim.

        Returns:
            The claimed video, or None if another worker owns it or it is
            not eligible.
        """

    @abstractmethod
    async def record_source_probe(
        self, video_id: uuid.UUID, duration: float, degraded: bool
    ) -> None:
        ...

    @abstractmethod
    async def record_adaptive_stream(self, video_id: uuid.UUID, playback_url: str) -> None:
        ...

    @abstractmethod
    async def clear_adaptive_stream(self, video_id: uuid.UUID) -> None:
        """Forget a stream whose output is about to be rebuilt."""
        ...

    @abstractmethod
    async def record_thumbnails(
        self, video_id: uuid.UUID, default_path: str, paths: list[str]
    ) -> None:
        ...

    @abstractmethod
    async def record_protection(
        self, video_id: uuid.UUID, drm_type: str, key_id: str
    ) -> None:
        ...

    @abstractmethod
    async def record_subtitles(self, video_id: uuid.UUID, languages: list[str]) -> None:
        ...

    @abstractmethod
    async def mark_complete(self, video_id: uuid.UUID, duration: float) -> bool:
        """Move a processing video to complete, clearing any previous error."""

    @abstractmethod
    async def mark_pending(self, video_id: uuid.UUID) -> bool:
        """Return a processing video to pending so a retry can claim it."""

    @abstractmethod
    async def mark_failed(self, video_id: uuid.UUID, error: str) -> bool:
        """Move a processing video to its terminal failed state."""


class SQLAlchemyVideoRepository(VideoRepository):
    """Video repository backed by the async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== Queries ====================

    async def get_video(self, video_id: uuid.UUID) -> Optional[Video]:
        query = select(Video).where(Video.id == video_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def _reload(self, video_id: uuid.UUID) -> Optional[Video]:
        query = (
            select(Video)
            .where(Video.id == video_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_counts_by_status(self) -> dict[str, int]:
        """Get video counts grouped by status."""
        query = select(Video.status, func.count(Video.id)).group_by(Video.status)
        result = await self.session.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def get_average_processing_duration(self) -> Optional[float]:
        """Average wall-clock duration of successfully processed videos."""
        query = select(func.avg(Video.processing_duration)).where(
            Video.status == VideoStatus.COMPLETE.value
        )
        result = await self.session.execute(query)
        value = result.scalar()
        return float(value) if value is not None else None

    async def get_stuck_videos(self, updated_before: datetime) -> list[Video]:
        """Get videos that have been processing since before ``updated_before``."""
        query = (
            select(Video)
            .where(
                and_(
                    Video.status == VideoStatus.PROCESSING.value,
                    Video.updated_at < updated_before,
                )
            )
            .order_by(Video.updated_at)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_failed_videos(self, limit: int = 100) -> list[Video]:
        query = (
            select(Video)
            .where(Video.status == VideoStatus.FAILED.value)
            .order_by(Video.updated_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # ==================== Creation ====================

    async def create_video(
        self,
        source_path: str,
        title: str = "",
        owner_email: Optional[str] = None,
    ) -> Video:
        """Register an uploaded video as pending."""
        video = Video(
            source_path=source_path,
            title=title,
            owner_email=owner_email,
            status=VideoStatus.PENDING.value,
            processing_attempts=0,
        )
        self.session.add(video)
        await self.session.commit()
        return video

    async def set_source_path(self, video_id: uuid.UUID, source_path: str) -> bool:
        """Point a video that has not been processed yet at a new upload."""
        video = await self.get_video(video_id)
        if not video or not video.is_pending():
            return False
        video.source_path = source_path
        await self.session.commit()
        return True

    # ==================== Claiming ====================

    async def claim_for_processing(self, video_id: uuid.UUID, max_attempts: int) -> Optional[Video]:
        stmt = (
            update(Video)
            .where(
                and_(
                    Video.id == video_id,
                    Video.status == VideoStatus.PENDING.value,
                    Video.processing_attempts < max_attempts,
                )
            )
            .values(
                status=VideoStatus.PROCESSING.value,
                processing_attempts=Video.processing_attempts + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        if result.rowcount != 1:
            return None
        return await self._reload(video_id)

    # ==================== Stage results ====================

    async def _update(self, video_id: uuid.UUID, **values) -> bool:
        video = await self.get_video(video_id)
        if not video:
            return False
        for key, value in values.items():
            setattr(video, key, value)
        await self.session.commit()
        return True

    async def record_source_probe(
        self, video_id: uuid.UUID, duration: float, degraded: bool
    ) -> None:
        await self._update(video_id, source_duration=duration, duration_degraded=degraded)

    async def record_adaptive_stream(self, video_id: uuid.UUID, playback_url: str) -> None:
        await self._update(video_id, playback_url=playback_url, adaptive_streaming=True)

    async def clear_adaptive_stream(self, video_id: uuid.UUID) -> None:
        await self._update(video_id, playback_url=None, adaptive_streaming=False)

    async def record_thumbnails(
        self, video_id: uuid.UUID, default_path: str, paths: list[str]
    ) -> None:
        await self._update(video_id, thumbnail_path=default_path, thumbnails=list(paths))

    async def record_protection(
        self, video_id: uuid.UUID, drm_type: str, key_id: str
    ) -> None:
        await self._update(video_id, is_protected=True, drm_type=drm_type, drm_key_id=key_id)

    async def record_subtitles(self, video_id: uuid.UUID, languages: list[str]) -> None:
        await self._update(
            video_id,
            has_subtitles=bool(languages),
            subtitle_languages=list(languages),
        )

    # ==================== Transitions ====================

    async def _transition(
        self,
        video_id: uuid.UUID,
        from_status: VideoStatus,
        **values,
    ) -> bool:
        values["updated_at"] = datetime.utcnow()
        stmt = (
            update(Video)
            .where(and_(Video.id == video_id, Video.status == from_status.value))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        if result.rowcount != 1:
            return False
        await self._reload(video_id)
        return True

    async def mark_complete(self, video_id: uuid.UUID, duration: float) -> bool:
        return await self._transition(
            video_id,
            VideoStatus.PROCESSING,
            status=VideoStatus.COMPLETE.value,
            processing_duration=duration,
            processing_error=None,
            processed_at=datetime.utcnow(),
        )

    async def mark_pending(self, video_id: uuid.UUID) -> bool:
        return await self._transition(
            video_id,
            VideoStatus.PROCESSING,
            status=VideoStatus.PENDING.value,
        )

    async def mark_failed(self, video_id: uuid.UUID, error: str) -> bool:
        return await self._transition(
            video_id,
            VideoStatus.PROCESSING,
            status=VideoStatus.FAILED.value,
            processing_error=error,
        )

    # ==================== Operator actions ====================

    async def reset_to_pending(self, video_id: uuid.UUID, reset_attempts: bool = False) -> bool:
        """Return a stuck or failed video to pending.

        Only operator tooling calls this; the runner never leaves the
        terminal failed state on its own.
        """
        video = await self.get_video(video_id)
        if not video or video.is_complete():
            return False
        video.status = VideoStatus.PENDING.value
        video.processing_error = None
        if reset_attempts:
            video.processing_attempts = 0
        await self.session.commit()
        return True
