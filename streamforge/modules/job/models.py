"""Job queue models for video processing with DLQ support.

A job is the persisted handle of one video's processing work. The job
runner claims it, runs attempts until success or until the attempt cap
is reached, and dead-letters it on terminal failure.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from streamforge.core.database import Base


class JobStatus(str, Enum):
    """Job processing status."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DLQ = "dlq"


class JobType(str, Enum):
    """Types of jobs in the system."""
    VIDEO_PROCESSING = "video_processing"


class Job(Base):
    """Persisted processing job with retry scheduling and DLQ tracking."""

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    job_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=JobType.VIDEO_PROCESSING.value, index=True
    )
    video_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    queue: Mapped[str] = mapped_column(String(100), nullable=False, default="video-processing")

    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.QUEUED.value, nullable=False, index=True
    )

    # Retry tracking
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    timeout_seconds: Mapped[int] = mapped_column(Integer, default=3600, nullable=False)

    # Not-before time, used for backoff between attempts
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # Results and errors
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # DLQ tracking
    moved_to_dlq_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    dlq_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    dlq_alert_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    dlq_alert_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_jobs_queue_status_scheduled", "queue", "status", "scheduled_at"),
        Index("ix_jobs_dlq_alert", "status", "dlq_alert_sent"),
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, video_id={self.video_id}, status={self.status})>"

    def is_queued(self) -> bool:
        """Check if job is waiting to be processed."""
        return self.status == JobStatus.QUEUED.value

    def is_processing(self) -> bool:
        """Check if job is currently being processed."""
        return self.status == JobStatus.PROCESSING.value

    def is_completed(self) -> bool:
        return self.status == JobStatus.COMPLETED.value

    def is_in_dlq(self) -> bool:
        """Check if job is in dead letter queue."""
        return self.status == JobStatus.DLQ.value

    def is_active(self) -> bool:
        """Queued or in flight."""
        return self.is_queued() or self.is_processing()

    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts


class DLQAlert(Base):
    """Operator alert raised once per dead-lettered job."""

    __tablename__ = "dlq_alerts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    job_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True, index=True)
    video_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)

    # Alert status
    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False)
    acknowledged_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Notification tracking
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    notification_channels: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<DLQAlert(id={self.id}, job_id={self.job_id}, acknowledged={self.acknowledged})>"
