"""Redis helpers.

Redis is the Celery broker; it also holds the locks that keep periodic
tasks from overlapping.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
from redis.exceptions import LockError

from streamforge.core.config import settings

logger = logging.getLogger(__name__)

LOCK_PREFIX = "streamforge:lock:"


@asynccontextmanager
async def single_instance(name: str, timeout: float) -> AsyncIterator[bool]:
    """Hold a cluster-wide lock for the duration of the block.

    Yields False, without waiting, when another holder has the lock. The
    lock expires after ``timeout`` seconds so a killed holder cannot keep
    it forever.
    """
    # Celery tasks run each call in a fresh event loop, so no shared client
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    lock = client.lock(f"{LOCK_PREFIX}{name}", timeout=timeout)
    acquired = await lock.acquire(blocking=False)
    try:
        yield acquired
    finally:
        if acquired:
            try:
                await lock.release()
            except LockError:
                logger.warning(f"Lock {name} expired before it was released")
        await client.aclose()
