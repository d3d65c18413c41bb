"""Local media storage layout for processed outputs.

All generated files live under the media root::

    videos/adaptive/<video_id>/playlist.m3u8
    videos/adaptive/<video_id>/<rendition>/playlist.m3u8, segment_NNN.ts
    thumbnails/<video_id>/thumb_<i>.jpg
    subtitles/<video_id>/<lang>.vtt
    temp/<video_id>_audio.flac
"""

import logging
import os
import shutil
import uuid
from typing import Union

logger = logging.getLogger(__name__)

VideoId = Union[uuid.UUID, str]


class MediaStorage:
    """Paths and public URLs of processed media."""

    def __init__(self, media_root: str, public_url: str = "/storage"):
        """Initialize storage.

        Args:
            media_root: Directory all outputs are written under
            public_url: URL prefix the media root is served from
        """
        self.media_root = os.path.abspath(media_root)
        self.public_url = public_url.rstrip("/")

    def path(self, *parts: str) -> str:
        return os.path.join(self.media_root, *parts)

    def relative(self, path: str) -> str:
        """Path relative to the media root, with forward slashes."""
        return os.path.relpath(path, self.media_root).replace(os.sep, "/")

    def url_for(self, path: str) -> str:
        """Public URL of a file under the media root."""
        return f"{self.public_url}/{self.relative(path)}"

    # ==================== Layout ====================

    def adaptive_dir(self, video_id: VideoId) -> str:
        return self.path("videos", "adaptive", str(video_id))

    def rendition_dir(self, video_id: VideoId, rendition: str) -> str:
        return os.path.join(self.adaptive_dir(video_id), rendition)

    def master_playlist_path(self, video_id: VideoId) -> str:
        return os.path.join(self.adaptive_dir(video_id), "playlist.m3u8")

    def thumbnail_dir(self, video_id: VideoId) -> str:
        return self.path("thumbnails", str(video_id))

    def thumbnail_path(self, video_id: VideoId, index: int) -> str:
        return os.path.join(self.thumbnail_dir(video_id), f"thumb_{index}.jpg")

    def subtitle_dir(self, video_id: VideoId) -> str:
        return self.path("subtitles", str(video_id))

    def subtitle_path(self, video_id: VideoId, language: str) -> str:
        return os.path.join(self.subtitle_dir(video_id), f"{language}.vtt")

    def temp_audio_path(self, video_id: VideoId) -> str:
        return self.path("temp", f"{video_id}_audio.flac")

    # ==================== Cleanup ====================

    def remove_tree(self, path: str) -> bool:
        """Remove a directory of partial output. Returns True if anything was removed."""
        if not os.path.isdir(path):
            return False
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
            return False
        return True

    def remove_file(self, path: str) -> bool:
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
            return False
        return True
