"""Thumbnail extraction at fixed fractions of the video duration."""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from streamforge.modules.processing.results import StageResult
from streamforge.modules.transcoding.ffmpeg import EncoderGateway
from streamforge.modules.transcoding.storage import MediaStorage

logger = logging.getLogger(__name__)

STAGE_NAME = "thumbnails"

THUMBNAIL_FRACTIONS = (0.1, 0.3, 0.5, 0.7, 0.9)
DEFAULT_FRACTION = 0.5


@dataclass
class ThumbnailFrame:
    """One extracted (or attempted) thumbnail."""
    index: int
    fraction: float
    offset: int  # seconds into the video
    path: str
    success: bool = False
    error_message: Optional[str] = None


def thumbnail_offsets(duration: float, fractions: Sequence[float] = THUMBNAIL_FRACTIONS) -> list[int]:
    """Whole-second offsets at each fraction of ``duration``."""
    return [int(duration * fraction) for fraction in fractions]


def select_default_thumbnail(frames: Sequence[ThumbnailFrame]) -> Optional[ThumbnailFrame]:
    """Pick the frame shown by default.

    The frame at half the duration wins if it was extracted, otherwise the
    first successful frame in fraction order.
    """
    successful = [frame for frame in frames if frame.success]
    for frame in successful:
        if frame.fraction == DEFAULT_FRACTION:
            return frame
    return successful[0] if successful else None


def build_thumbnail_args(offset: int) -> list[str]:
    return ["-ss", str(offset), "-vframes", "1", "-q:v", "2"]


class ThumbnailExtractor:
    """Extracts still frames from the source video."""

    def __init__(
        self,
        gateway: EncoderGateway,
        storage: MediaStorage,
        fractions: Sequence[float] = THUMBNAIL_FRACTIONS,
    ):
        self.gateway = gateway
        self.storage = storage
        self.fractions = tuple(fractions)

    async def extract(
        self,
        video_id: uuid.UUID,
        source_path: str,
        duration: float,
    ) -> StageResult:
        """Extract one frame per fraction.

        Individual failures are tolerated; the stage fails only when no
        frame at all could be extracted.

        Returns:
            SUCCESS with ``default`` and ``paths``, or RETRYABLE.
        """
        output_dir = self.storage.thumbnail_dir(video_id)
        try:
            os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            return StageResult.retryable(STAGE_NAME, f"Could not create {output_dir}: {e}")

        frames = []
        offsets = thumbnail_offsets(duration, self.fractions)
        for index, (fraction, offset) in enumerate(zip(self.fractions, offsets)):
            frame = ThumbnailFrame(
                index=index,
                fraction=fraction,
                offset=offset,
                path=self.storage.thumbnail_path(video_id, index),
            )
            result = await self.gateway.encode(
                source_path, build_thumbnail_args(offset), frame.path
            )
            frame.success = result.success
            frame.error_message = result.error_message
            if not result.success:
                logger.warning(
                    f"Thumbnail {index} at {offset}s for video {video_id} failed: "
                    f"{result.error_message}"
                )
            frames.append(frame)

        default = select_default_thumbnail(frames)
        if default is None:
            errors = "; ".join(f.error_message or "unknown error" for f in frames)
            return StageResult.retryable(STAGE_NAME, f"No thumbnail could be extracted: {errors}")

        paths = [self.storage.relative(f.path) for f in frames if f.success]
        return StageResult.success(
            STAGE_NAME,
            default=self.storage.relative(default.path),
            paths=paths,
            failed=[f.index for f in frames if not f.success],
        )
