"""Standalone video processing worker.

Usage:
    python -m streamforge.worker                  # run until SIGINT/SIGTERM
    python -m streamforge.worker --concurrency 4
    python -m streamforge.worker --once           # drain due jobs and exit
"""

import argparse
import asyncio
import logging
import signal
from typing import Optional, Sequence

from streamforge.core.config import settings
from streamforge.core.logging import setup_logging
from streamforge.core.metrics import set_app_info
from streamforge.core.tracing import setup_tracing, shutdown_tracing
from streamforge.modules.processing.config import ProcessingConfig
from streamforge.modules.processing.runner import JobRunner

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the video processing worker")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.VIDEO_PROCESSING_CONCURRENCY,
        help="Maximum number of videos processed at the same time",
    )
    parser.add_argument(
        "--queue",
        default=settings.VIDEO_PROCESSING_QUEUE,
        help="Queue to consume",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process the jobs that are due now, then exit",
    )
    return parser.parse_args(argv)


async def run_worker(runner: JobRunner, once: bool = False) -> None:
    if once:
        processed = await runner.run_once()
        logger.info(f"Processed {processed} job(s)")
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, runner.stop)
    await runner.run()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    if settings.TRACING_ENABLED:
        setup_tracing(
            service_name=f"{settings.PROJECT_NAME}-worker",
            service_version=settings.VERSION,
            environment=settings.ENVIRONMENT,
            otlp_endpoint=settings.OTLP_ENDPOINT,
            console_export=settings.DEBUG,
        )
    set_app_info(version=settings.VERSION, environment=settings.ENVIRONMENT)

    config = ProcessingConfig.from_settings(concurrency=args.concurrency, queue=args.queue)
    try:
        asyncio.run(run_worker(JobRunner(config), once=args.once))
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    main()
