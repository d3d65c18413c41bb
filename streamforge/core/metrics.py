"""Prometheus metrics for the video processing pipeline."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

# Custom registry so that tests and workers never collide with the default one
REGISTRY = CollectorRegistry()

if "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


APP_INFO = Info(
    "streamforge_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# Job Runner Metrics
# ============================================
JOBS_TOTAL = Counter(
    "video_processing_jobs_total",
    "Video processing job attempts by outcome",
    ["queue_name", "outcome"],
    registry=REGISTRY,
)

JOB_DURATION_SECONDS = Histogram(
    "video_processing_job_duration_seconds",
    "Wall-clock duration of a processing attempt",
    ["queue_name"],
    buckets=[10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1200.0, 1800.0, 3600.0],
    registry=REGISTRY,
)

WORKERS_BUSY = Gauge(
    "video_processing_workers_busy",
    "Number of job attempts currently in flight",
    ["queue_name"],
    registry=REGISTRY,
)

QUEUE_DEPTH = Gauge(
    "video_processing_queue_depth",
    "Number of jobs in queue by status",
    ["queue_name", "status"],
    registry=REGISTRY,
)

DLQ_SIZE = Gauge(
    "video_processing_dlq_size",
    "Number of jobs in dead letter queue",
    ["queue_name"],
    registry=REGISTRY,
)


# ============================================
# Stage and Encoder Metrics
# ============================================
STAGE_DURATION_SECONDS = Histogram(
    "video_processing_stage_duration_seconds",
    "Duration of a processing stage",
    ["stage", "outcome"],
    buckets=[0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0, 1800.0],
    registry=REGISTRY,
)

ENCODER_INVOCATIONS_TOTAL = Counter(
    "encoder_invocations_total",
    "Encoder and prober subprocess invocations",
    ["operation", "result"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
