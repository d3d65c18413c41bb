"""Pydantic schemas for the job queue."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from streamforge.modules.job.models import JobStatus


class JobInfo(BaseModel):
    """Job information."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    video_id: uuid.UUID
    queue: str
    status: JobStatus
    attempts: int
    max_attempts: int
    scheduled_at: datetime
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class DLQJobInfo(JobInfo):
    """Dead-lettered job."""

    moved_to_dlq_at: Optional[datetime] = None
    dlq_reason: Optional[str] = None
    dlq_alert_sent: bool = False


class DLQAlertInfo(BaseModel):
    """DLQ alert information."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    job_id: uuid.UUID
    video_id: Optional[uuid.UUID] = None
    job_type: str
    error_message: Optional[str] = None
    attempts: int
    acknowledged: bool
    notification_sent: bool
    created_at: Optional[datetime] = None


class QueueStats(BaseModel):
    """Queue statistics for one processing lane."""

    queue: str
    queued_jobs: int = 0
    processing_jobs: int = 0
    completed_jobs: int = 0
    dlq_jobs: int = 0
    unacknowledged_alerts: int = 0
    generated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def total_jobs(self) -> int:
        return self.queued_jobs + self.processing_jobs + self.completed_jobs + self.dlq_jobs
