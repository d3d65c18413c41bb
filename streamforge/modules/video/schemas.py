"""Pydantic schemas for the video module."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from streamforge.modules.video.models import VideoStatus


class VideoProcessingInfo(BaseModel):
    """Processing state of a video as shown to operators."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    status: VideoStatus
    processing_attempts: int
    processing_error: Optional[str] = None
    processing_duration: Optional[float] = None
    adaptive_streaming: bool = False
    playback_url: Optional[str] = None
    thumbnail_path: Optional[str] = None
    is_protected: bool = False
    has_subtitles: bool = False
    subtitle_languages: Optional[list[str]] = None
    updated_at: Optional[datetime] = None


class VideoStatusCounts(BaseModel):
    """Videos grouped by processing status."""

    pending: int = 0
    processing: int = 0
    complete: int = 0
    failed: int = 0

    @classmethod
    def from_counts(cls, counts: dict[str, int]) -> "VideoStatusCounts":
        return cls(**{status.value: counts.get(status.value, 0) for status in VideoStatus})
