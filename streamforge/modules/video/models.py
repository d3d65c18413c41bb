"""Video model tracking an upload through the processing lifecycle.

A video is created ``pending`` by the upload path. From then on only the
job runner and the processing service move it between states:

    pending -> processing -> complete
                          -> pending   (retry scheduled)
                          -> failed    (attempts exhausted or fatal error)
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from streamforge.core.database import Base


class VideoStatus(str, Enum):
    """Processing status of a video."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


# Allowed status transitions after creation
VIDEO_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.PENDING: frozenset({VideoStatus.PROCESSING}),
    VideoStatus.PROCESSING: frozenset({
        VideoStatus.COMPLETE,
        VideoStatus.PENDING,
        VideoStatus.FAILED,
    }),
    VideoStatus.COMPLETE: frozenset(),
    VideoStatus.FAILED: frozenset(),
}


def can_transition(current: VideoStatus, target: VideoStatus) -> bool:
    """Check whether the runner may move a video from ``current`` to ``target``."""
    return target in VIDEO_TRANSITIONS[current]


class Video(Base):
    """Uploaded video and the streamable assets derived from it."""

    __tablename__ = "videos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    owner_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Original upload, never deleted by processing
    source_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    source_duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duration_degraded: Mapped[bool] = mapped_column(Boolean, default=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20), default=VideoStatus.PENDING.value, nullable=False, index=True
    )
    processing_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Adaptive streaming
    adaptive_streaming: Mapped[bool] = mapped_column(Boolean, default=False)
    playback_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # Thumbnails
    thumbnail_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    thumbnails: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Protection
    is_protected: Mapped[bool] = mapped_column(Boolean, default=False)
    drm_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    drm_key_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Subtitles
    has_subtitles: Mapped[bool] = mapped_column(Boolean, default=False)
    subtitle_languages: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_videos_status_updated", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, status={self.status}, attempts={self.processing_attempts})>"

    def is_pending(self) -> bool:
        return self.status == VideoStatus.PENDING.value

    def is_processing(self) -> bool:
        return self.status == VideoStatus.PROCESSING.value

    def is_complete(self) -> bool:
        """Check if processing finished successfully."""
        return self.status == VideoStatus.COMPLETE.value

    def is_failed(self) -> bool:
        return self.status == VideoStatus.FAILED.value

    def can_attempt(self, max_attempts: int) -> bool:
        """Check if another processing attempt is allowed."""
        return self.processing_attempts < max_attempts
