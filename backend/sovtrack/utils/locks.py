"""
Per-brand write locks
Serialize "recompute + append snapshot" for a brand across tasks (local)
or across processes (redis)
"""

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Optional

import redis.asyncio as redis

from sovtrack.config import get_settings
from sovtrack.errors import SnapshotWriteConflict

logger = logging.getLogger(__name__)


class BrandLocks(ABC):
    """
    Exclusive per-brand lock with bounded retries.

    Each attempt waits up to `timeout` seconds; between attempts the caller
    backs off exponentially. When every attempt fails SnapshotWriteConflict
    is raised.
    """

    def __init__(self, timeout: float, max_retries: int, backoff: float):
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff

    @abstractmethod
    async def _acquire(self, key: str) -> Optional[Any]:
        """Try once; return a handle or None on timeout"""

    @abstractmethod
    async def _release(self, key: str, handle: Any) -> None:
        """Release a handle returned by _acquire"""

    @asynccontextmanager
    async def hold(self, brand_id) -> AsyncIterator[None]:
        key = str(brand_id)
        handle = None
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            handle = await self._acquire(key)
            if handle is not None:
                break
            if attempt < attempts - 1:
                delay = self.backoff * (2 ** attempt)
                logger.warning(
                    f"Snapshot lock busy for brand {key}, retry {attempt + 1}/{self.max_retries} in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        if handle is None:
            raise SnapshotWriteConflict(
                f"Could not acquire snapshot lock for brand {key}",
                {"brand_id": key, "attempts": attempts, "timeout_seconds": self.timeout},
            )

        try:
            yield
        finally:
            await self._release(key, handle)


class LocalBrandLocks(BrandLocks):
    """In-process asyncio locks, one set per event loop"""

    def __init__(self, timeout: float, max_retries: int, backoff: float):
        super().__init__(timeout, max_retries, backoff)
        self._locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
            weakref.WeakKeyDictionary()
        )

    def _lock_for(self, key: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        per_loop = self._locks.setdefault(loop, {})
        return per_loop.setdefault(key, asyncio.Lock())

    def is_locked(self, brand_id) -> bool:
        return self._lock_for(str(brand_id)).locked()

    async def _acquire(self, key: str) -> Optional[asyncio.Lock]:
        lock = self._lock_for(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            return None
        return lock

    async def _release(self, key: str, handle: asyncio.Lock) -> None:
        handle.release()


class RedisBrandLocks(BrandLocks):
    """Redis lock shared by API processes and Celery workers"""

    KEY_PREFIX = "sovtrack:snapshot-lock"
    # Upper bound on how long a crashed holder can block a brand
    LOCK_TTL_SECONDS = 60

    def __init__(self, redis_url: str, timeout: float, max_retries: int, backoff: float):
        super().__init__(timeout, max_retries, backoff)
        self.redis_url = redis_url

    async def _acquire(self, key: str):
        client = redis.from_url(self.redis_url)
        lock = client.lock(
            f"{self.KEY_PREFIX}:{key}",
            timeout=self.LOCK_TTL_SECONDS,
            blocking_timeout=self.timeout,
        )
        if await lock.acquire():
            return client, lock
        await client.aclose()
        return None

    async def _release(self, key: str, handle) -> None:
        client, lock = handle
        try:
            await lock.release()
        finally:
            await client.aclose()


@lru_cache()
def get_brand_locks() -> BrandLocks:
    """Process-wide lock registry selected by SNAPSHOT_LOCK_BACKEND"""
    settings = get_settings()
    if settings.SNAPSHOT_LOCK_BACKEND == "redis":
        return RedisBrandLocks(
            settings.REDIS_URL,
            timeout=settings.SNAPSHOT_LOCK_TIMEOUT_SECONDS,
            max_retries=settings.SNAPSHOT_WRITE_MAX_RETRIES,
            backoff=settings.SNAPSHOT_WRITE_BACKOFF_SECONDS,
        )
    return LocalBrandLocks(
        timeout=settings.SNAPSHOT_LOCK_TIMEOUT_SECONDS,
        max_retries=settings.SNAPSHOT_WRITE_MAX_RETRIES,
        backoff=settings.SNAPSHOT_WRITE_BACKOFF_SECONDS,
    )
