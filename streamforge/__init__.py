"""StreamForge video processing backend.

Turns uploaded videos into adaptive HLS streams with thumbnails, optional
DRM packaging and optional auto-generated subtitles.

Modules:
    - core: Configuration, database, logging, tracing, metrics, Celery setup
    - modules.video: Video records and their processing lifecycle
    - modules.job: Persisted job queue and dead letter queue
    - modules.transcoding: FFmpeg gateway, rendition planning, HLS, thumbnails
    - modules.protection: Pluggable DRM providers
    - modules.subtitles: Pluggable speech-to-text providers
    - modules.notification: Processing failure alerts
    - modules.processing: Orchestrator, job runner and queue monitor
"""

__version__ = "0.1.0"
