"""Persisted job queue with retry scheduling and dead-letter handling."""

from streamforge.modules.job.models import DLQAlert, Job, JobStatus, JobType
from streamforge.modules.job.repository import DLQAlertRepository, JobRepository
from streamforge.modules.job.retry import RetryConfig
from streamforge.modules.job.service import JobQueueService

__all__ = [
    "Job",
    "JobStatus",
    "JobType",
    "DLQAlert",
    "JobRepository",
    "DLQAlertRepository",
    "RetryConfig",
    "JobQueueService",
]
