"""Celery application configuration."""

from celery import Celery

from streamforge.core.config import settings

# Headroom over one attempt timeout for claiming, settling and notifying
TASK_TIME_MARGIN = 300

celery_app = Celery(
    "streamforge",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.VIDEO_PROCESSING_TIMEOUT + TASK_TIME_MARGIN,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_routes={
        "streamforge.modules.processing.tasks.*": {
            "queue": settings.VIDEO_PROCESSING_QUEUE,
        },
    },
    beat_schedule={
        "drain-video-processing-queue": {
            "task": "streamforge.modules.processing.tasks.process_video_queue_task",
            "schedule": 60.0,
            # Drop a tick that was not picked up before the next one
            "options": {"expires": 55},
        },
    },
)

celery_app.autodiscover_tasks(["streamforge.modules.processing"])
