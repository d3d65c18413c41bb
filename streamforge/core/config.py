"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "StreamForge"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Tracing
    TRACING_ENABLED: bool = False
    OTLP_ENDPOINT: Optional[str] = None

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./streamforge.db"

    # Redis (Celery broker and result backend)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Media storage
    MEDIA_ROOT: str = "./storage"
    MEDIA_PUBLIC_URL: str = "/storage"

    # Encoder binaries
    FFMPEG_BINARY_PATH: str = "ffmpeg"
    FFPROBE_BINARY_PATH: str = "ffprobe"
    FFMPEG_THREADS: int = 2
    HLS_SEGMENT_SECONDS: int = 10
    AUDIO_BITRATE: str = "128k"
    DEFAULT_SOURCE_DURATION: float = 600.0
    SUPPORTED_SOURCE_EXTENSIONS: list[str] = [
        "mp4", "mov", "m4v", "mkv", "webm", "avi", "mpeg", "mpg", "ts", "flv", "wmv",
    ]

    # Video processing queue
    VIDEO_PROCESSING_QUEUE: str = "video-processing"
    VIDEO_PROCESSING_MAX_ATTEMPTS: int = 3
    VIDEO_PROCESSING_BACKOFF: list[int] = [60, 300, 600]
    VIDEO_PROCESSING_TIMEOUT: int = 3600
    VIDEO_PROCESSING_CONCURRENCY: int = 1
    VIDEO_PROCESSING_POLL_INTERVAL: float = 5.0
    VIDEO_PROCESSING_RECOVERY_INTERVAL: float = 60.0
    VIDEO_PROCESSING_STUCK_MINUTES: int = 180

    # DRM packaging
    DRM_ENABLED: bool = False
    DRM_PROVIDER: str = "widevine"  # widevine, playready, fairplay
    DRM_LICENSE_SERVER: str = ""
    DRM_CONTENT_KEY: str = ""
    DRM_API_KEY: str = ""

    # Speech to text
    SPEECH_TO_TEXT_ENABLED: bool = False
    SPEECH_TO_TEXT_PROVIDER: str = "google"  # google, aws, azure
    SPEECH_TO_TEXT_API_KEY: str = ""
    SPEECH_TO_TEXT_PRIMARY_LANGUAGE: str = "en"
    SPEECH_TO_TEXT_ADDITIONAL_LANGUAGES: list[str] = ["es", "fr"]

    # Email (for failure notifications)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""
    SMTP_TLS: bool = True

    # Operator notifications
    ADMIN_NOTIFICATION_EMAILS: list[str] = []
    NOTIFICATION_SLACK_WEBHOOK: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
