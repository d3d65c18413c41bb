"""Immutable processing configuration.

Components receive a ``ProcessingConfig`` rather than reading the global
settings, so tests and tools can build their own.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from streamforge.core.config import Settings, settings as app_settings
from streamforge.modules.job.retry import RetryConfig


@dataclass(frozen=True)
class ProcessingConfig:
    """Settings of the processing pipeline and job runner."""

    # Storage
    media_root: str = "./storage"
    media_public_url: str = "/storage"

    # Encoder
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_threads: Optional[int] = 2
    segment_seconds: int = 10
    audio_bitrate: str = "128k"
    default_source_duration: float = 600.0
    supported_extensions: tuple[str, ...] = (
        "mp4", "mov", "m4v", "mkv", "webm", "avi", "mpeg", "mpg", "ts", "flv", "wmv",
    )

    # Job runner
    queue: str = "video-processing"
    max_attempts: int = 3
    backoff: tuple[float, ...] = (60.0, 300.0, 600.0)
    timeout: float = 3600.0
    concurrency: int = 1
    poll_interval: float = 5.0
    recovery_interval: float = 60.0
    stuck_minutes: int = 180

    # Protection
    drm_enabled: bool = False
    drm_provider: str = "widevine"
    drm_license_server: str = ""
    drm_content_key: str = ""
    drm_api_key: str = field(default="", repr=False)

    # Subtitles
    subtitles_enabled: bool = False
    speech_to_text_provider: str = "google"
    speech_to_text_api_key: str = field(default="", repr=False)
    primary_language: str = "en"
    additional_languages: tuple[str, ...] = ("es", "fr")

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None, **overrides: Any) -> "ProcessingConfig":
        """Build the configuration from application settings."""
        s = source or app_settings
        config = cls(
            media_root=s.MEDIA_ROOT,
            media_public_url=s.MEDIA_PUBLIC_URL,
            ffmpeg_path=s.FFMPEG_BINARY_PATH,
            ffprobe_path=s.FFPROBE_BINARY_PATH,
            ffmpeg_threads=s.FFMPEG_THREADS or None,
            segment_seconds=s.HLS_SEGMENT_SECONDS,
            audio_bitrate=s.AUDIO_BITRATE,
            default_source_duration=s.DEFAULT_SOURCE_DURATION,
            supported_extensions=tuple(ext.lower().lstrip(".") for ext in s.SUPPORTED_SOURCE_EXTENSIONS),
            queue=s.VIDEO_PROCESSING_QUEUE,
            max_attempts=s.VIDEO_PROCESSING_MAX_ATTEMPTS,
            backoff=tuple(float(delay) for delay in s.VIDEO_PROCESSING_BACKOFF),
            timeout=float(s.VIDEO_PROCESSING_TIMEOUT),
            concurrency=s.VIDEO_PROCESSING_CONCURRENCY,
            poll_interval=s.VIDEO_PROCESSING_POLL_INTERVAL,
            recovery_interval=s.VIDEO_PROCESSING_RECOVERY_INTERVAL,
            stuck_minutes=s.VIDEO_PROCESSING_STUCK_MINUTES,
            drm_enabled=s.DRM_ENABLED,
            drm_provider=s.DRM_PROVIDER,
            drm_license_server=s.DRM_LICENSE_SERVER,
            drm_content_key=s.DRM_CONTENT_KEY,
            drm_api_key=s.DRM_API_KEY,
            subtitles_enabled=s.SPEECH_TO_TEXT_ENABLED,
            speech_to_text_provider=s.SPEECH_TO_TEXT_PROVIDER,
            speech_to_text_api_key=s.SPEECH_TO_TEXT_API_KEY,
            primary_language=s.SPEECH_TO_TEXT_PRIMARY_LANGUAGE,
            additional_languages=tuple(s.SPEECH_TO_TEXT_ADDITIONAL_LANGUAGES),
        )
        return replace(config, **overrides) if overrides else config

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            backoff=self.backoff,
            timeout=self.timeout,
        )
