"""Monitor the video processing queue.

Usage:
    python -m scripts.monitor_video_processing
    python -m scripts.monitor_video_processing --stuck-minutes 60 --reset-stuck
    python -m scripts.monitor_video_processing --retry-failed
    python -m scripts.monitor_video_processing --clear-failed
    python -m scripts.monitor_video_processing --ack-alert <alert-id> --ack-by alice
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from streamforge.core.database import async_session_maker
from streamforge.modules.processing.monitor import QueueMonitorService


async def main(args: argparse.Namespace):
    """Print queue stats and run the requested recovery actions."""
    async with async_session_maker() as session:
        monitor = QueueMonitorService(session)

        if args.retry_failed:
            ids = await monitor.retry_failed_videos()
            print(f"\nRequeued {len(ids)} failed video(s)")

        if args.clear_failed:
            removed = await monitor.clear_failed_jobs()
            print(f"\nRemoved {removed} dead-lettered job(s)")

        overview = await monitor.get_overview()

        print("\n" + "=" * 60)
        print(f"Video Processing Queue: {overview.jobs.queue}")
        print("=" * 60)
        print(f"Generated at: {overview.generated_at.isoformat()}")

        print("\nVideos:")
        print(f"  Pending:    {overview.videos.pending}")
        print(f"  Processing: {overview.videos.processing}")
        print(f"  Complete:   {overview.videos.complete}")
        print(f"  Failed:     {overview.videos.failed}")

        print("\nJobs:")
        print(f"  Queued:     {overview.jobs.queued_jobs}")
        print(f"  Processing: {overview.jobs.processing_jobs}")
        print(f"  Completed:  {overview.jobs.completed_jobs}")
        print(f"  DLQ:        {overview.jobs.dlq_jobs}")
        print(f"  Unacknowledged alerts: {overview.jobs.unacknowledged_alerts}")

        if overview.average_duration is not None:
            print(f"\nAverage processing time: {overview.average_duration:.1f}s")

        stuck = await monitor.find_stuck_videos(args.stuck_minutes)
        minutes = args.stuck_minutes or monitor.config.stuck_minutes
        print("\n" + "=" * 60)
        print(f"Stuck Videos (processing for more than {minutes} minutes)")
        print("=" * 60)

        if not stuck:
            print("\nNo stuck videos.")
        for video in stuck:
            print(f"ID: {video.id}")
            print(f"  Title: {video.title}")
            print(f"  Attempts: {video.processing_attempts}")
            print(f"  Last update: {video.updated_at}")
            print()

        if stuck and args.reset_stuck:
            reset = await monitor.reset_stuck_videos(args.stuck_minutes)
            print(f"Reset {len(reset)} stuck video(s) to pending")

        if args.ack_alert:
            acknowledged = await monitor.jobs.acknowledge_alert(uuid.UUID(args.ack_alert), args.ack_by)
            print(f"\nAlert {args.ack_alert} {'acknowledged' if acknowledged else 'not found'}")

        alerts = await monitor.jobs.get_unacknowledged_alerts(limit=10)
        if alerts:
            print("\n" + "=" * 60)
            print("Unacknowledged DLQ Alerts")
            print("=" * 60)
            for alert in alerts:
                print(f"Alert: {alert.id}")
                print(f"  Video: {alert.video_id}")
                print(f"  Attempts: {alert.attempts}")
                print(f"  Error: {alert.error_message}")
                print(f"  Notified: {'yes' if alert.notification_sent else 'no'}")
                print()

        failed = await monitor.jobs.get_dlq_jobs(monitor.config.queue, limit=10)
        if failed:
            print("\n" + "=" * 60)
            print("Recent Dead-Lettered Jobs")
            print("=" * 60)
            for job in failed:
                print(f"Job: {job.id}")
                print(f"  Video: {job.video_id}")
                print(f"  Attempts: {job.attempts}/{job.max_attempts}")
                print(f"  Error: {job.error}")
                print(f"  Moved at: {job.moved_to_dlq_at}")
                print()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Monitor the video processing queue")
    parser.add_argument("--stuck-minutes", type=int, default=None, help="Stuck threshold in minutes")
    parser.add_argument("--reset-stuck", action="store_true", help="Reset stuck videos to pending")
    parser.add_argument("--retry-failed", action="store_true", help="Requeue failed videos")
    parser.add_argument("--clear-failed", action="store_true", help="Delete dead-lettered jobs")
    parser.add_argument("--ack-alert", metavar="ALERT_ID", help="Acknowledge a DLQ alert")
    parser.add_argument("--ack-by", default="operator", help="Name recorded on the acknowledgement")
    args = parser.parse_args()

    asyncio.run(main(args))
