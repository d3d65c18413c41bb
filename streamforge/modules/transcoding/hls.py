"""HLS adaptive stream builder.

Encodes every rendition of the plan into fixed-duration segments with its
own media playlist, then writes the master playlist referencing them. The
stage is all or nothing: if any rendition fails the whole output
directory of the video is removed.
"""

import asyncio
import logging
import os
import uuid
from typing import Optional, Sequence

from streamforge.modules.processing.results import StageResult
from streamforge.modules.transcoding.abr import Rendition
from streamforge.modules.transcoding.ffmpeg import EncoderGateway
from streamforge.modules.transcoding.storage import MediaStorage

logger = logging.getLogger(__name__)

STAGE_NAME = "adaptive_stream"
PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "segment_%03d.ts"


def build_rendition_args(
    rendition: Rendition,
    segment_pattern: str,
    segment_seconds: int = 10,
    audio_bitrate: str = "128k",
) -> list[str]:
    """Get FFmpeg output arguments for one HLS rendition.

    Args:
        rendition: Rendition to encode
        segment_pattern: Path pattern of the segment files
        segment_seconds: Target segment duration
        audio_bitrate: AAC audio bitrate

    Returns:
        List of FFmpeg arguments
    """
    return [
        "-vf", f"scale={rendition.width}:{rendition.height}",
        "-c:v", "h264",
        "-b:v", rendition.bitrate,
        "-c:a", "aac",
        "-b:a", audio_bitrate,
        "-f", "hls",
        "-hls_time", str(segment_seconds),
        "-hls_list_size", "0",
        "-hls_segment_filename", segment_pattern,
    ]


def build_master_playlist(renditions: Sequence[Rendition]) -> str:
    """Render the master playlist, variants in increasing bandwidth order."""
    lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for rendition in sorted(renditions, key=lambda r: r.bandwidth):
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={rendition.bandwidth},"
            f"RESOLUTION={rendition.resolution}"
        )
        lines.append(f"{rendition.name}/{PLAYLIST_NAME}")
    return "\n".join(lines) + "\n"


class AdaptiveStreamBuilder:
    """Builds the multi-bitrate HLS output of a video."""

    def __init__(
        self,
        gateway: EncoderGateway,
        storage: MediaStorage,
        segment_seconds: int = 10,
        audio_bitrate: str = "128k",
    ):
        self.gateway = gateway
        self.storage = storage
        self.segment_seconds = segment_seconds
        self.audio_bitrate = audio_bitrate

    async def build(
        self,
        video_id: uuid.UUID,
        source_path: str,
        renditions: Sequence[Rendition],
    ) -> StageResult:
        """Encode all renditions and write the master playlist.

        Returns:
            SUCCESS with ``playback_url`` and ``manifest_path``, or RETRYABLE
            when an encode or a write failed.
        """
        if not renditions:
            return StageResult.fatal(STAGE_NAME, "No renditions planned")

        output_dir = self.storage.adaptive_dir(video_id)
        # Leftovers from an interrupted attempt
        self.storage.remove_tree(output_dir)

        try:
            os.makedirs(output_dir, exist_ok=True)
            for rendition in renditions:
                error = await self._encode_rendition(video_id, source_path, rendition)
                if error:
                    self.storage.remove_tree(output_dir)
                    return StageResult.retryable(
                        STAGE_NAME,
                        f"Rendition {rendition.name} failed: {error}",
                        rendition=rendition.name,
                    )

            manifest_path = self.storage.master_playlist_path(video_id)
            with open(manifest_path, "w", encoding="utf-8") as f:
                f.write(build_master_playlist(renditions))
        except asyncio.CancelledError:
            self.storage.remove_tree(output_dir)
            raise
        except OSError as e:
            self.storage.remove_tree(output_dir)
            return StageResult.retryable(STAGE_NAME, f"Could not write stream output: {e}")

        playback_url = self.storage.url_for(manifest_path)
        logger.info(f"Built {len(renditions)} renditions for video {video_id}")
        return StageResult.success(
            STAGE_NAME,
            playback_url=playback_url,
            manifest_path=manifest_path,
            renditions=[r.name for r in renditions],
        )

    async def _encode_rendition(
        self,
        video_id: uuid.UUID,
        source_path: str,
        rendition: Rendition,
    ) -> Optional[str]:
        rendition_dir = self.storage.rendition_dir(video_id, rendition.name)
        os.makedirs(rendition_dir, exist_ok=True)

        args = build_rendition_args(
            rendition,
            segment_pattern=os.path.join(rendition_dir, SEGMENT_PATTERN),
            segment_seconds=self.segment_seconds,
            audio_bitrate=self.audio_bitrate,
        )
        result = await self.gateway.encode(
            source_path,
            args,
            os.path.join(rendition_dir, PLAYLIST_NAME),
        )
        if not result.success:
            logger.warning(
                f"Encoding {rendition.name} for video {video_id} failed: {result.error_message}"
            )
            return result.error_message or "encoder failed"
        return None
