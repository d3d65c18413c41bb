"""Add video processing tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'videos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False, server_default=''),
        sa.Column('owner_email', sa.String(255), nullable=True),
        sa.Column('source_path', sa.String(1024), nullable=False),
        sa.Column('source_duration', sa.Float(), nullable=True),
        sa.Column('duration_degraded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('processing_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('processing_duration', sa.Float(), nullable=True),
        sa.Column('adaptive_streaming', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('playback_url', sa.String(1024), nullable=True),
        sa.Column('thumbnail_path', sa.String(1024), nullable=True),
        sa.Column('thumbnails', sa.JSON(), nullable=True),
        sa.Column('is_protected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('drm_type', sa.String(50), nullable=True),
        sa.Column('drm_key_id', sa.String(255), nullable=True),
        sa.Column('has_subtitles', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('subtitle_languages', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_videos_status', 'videos', ['status'])
    op.create_index('ix_videos_status_updated', 'videos', ['status', 'updated_at'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_type', sa.String(50), nullable=False, server_default='video_processing'),
        sa.Column('video_id', sa.Uuid(), nullable=False),
        sa.Column('queue', sa.String(100), nullable=False, server_default='video-processing'),
        sa.Column('status', sa.String(20), nullable=False, server_default='queued'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('timeout_seconds', sa.Integer(), nullable=False, server_default='3600'),
        sa.Column('scheduled_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('moved_to_dlq_at', sa.DateTime(), nullable=True),
        sa.Column('dlq_reason', sa.String(500), nullable=True),
        sa.Column('dlq_alert_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('dlq_alert_sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_job_type', 'jobs', ['job_type'])
    op.create_index('ix_jobs_video_id', 'jobs', ['video_id'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_queue_status_scheduled', 'jobs', ['queue', 'status', 'scheduled_at'])
    op.create_index('ix_jobs_dlq_alert', 'jobs', ['status', 'dlq_alert_sent'])

    op.create_table(
        'dlq_alerts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_id', sa.Uuid(), nullable=False),
        sa.Column('video_id', sa.Uuid(), nullable=True),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('acknowledged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('acknowledged_by', sa.String(255), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('notification_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notification_channels', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_dlq_alerts_job_id', 'dlq_alerts', ['job_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_dlq_alerts_job_id', table_name='dlq_alerts')
    op.drop_table('dlq_alerts')

    op.drop_index('ix_jobs_dlq_alert', table_name='jobs')
    op.drop_index('ix_jobs_queue_status_scheduled', table_name='jobs')
    op.drop_index('ix_jobs_status', table_name='jobs')
    op.drop_index('ix_jobs_video_id', table_name='jobs')
    op.drop_index('ix_jobs_job_type', table_name='jobs')
    op.drop_table('jobs')

    op.drop_index('ix_videos_status_updated', table_name='videos')
    op.drop_index('ix_videos_status', table_name='videos')
    op.drop_table('videos')
