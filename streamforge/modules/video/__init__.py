"""Video records and their persistence."""

from streamforge.modules.video.models import (
    Video,
    VideoStatus,
    can_transition,
)
from streamforge.modules.video.repository import (
    SQLAlchemyVideoRepository,
    VideoRepository,
)

__all__ = [
    "Video",
    "VideoStatus",
    "can_transition",
    "VideoRepository",
    "SQLAlchemyVideoRepository",
]
