"""Per-key mutual exclusion for read-modify-write sequences.

Provides:
- KeyedLock: process-local asyncio locks, one per key, dropped when unused
- EnrollmentLocks: KeyedLock layered with a Redis lock so several workers
  serialize on the same (user_id, course_id) key. The Redis lock TTL is
  renewed while held, so a long advancement chain keeps it.

Different keys never share a lock, so unrelated enrollments never contend.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from redis.exceptions import LockError

from src.core.redis import enrollment_lock_name


if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.lock import Lock

logger = structlog.get_logger(__name__)


class LockTimeoutError(Exception):
    """Lock could not be acquired within the allowed wait."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Timed out waiting for lock {key}")


class KeyedLock:
    """Process-local lock registry keyed by string."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def acquire(self, key: str, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired within ``timeout``
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except TimeoutError as e:
                raise LockTimeoutError(key) from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]


class EnrollmentLocks:
    """Serializes work on a single enrollment across tasks and workers."""

    def __init__(
        self,
        redis: "Redis | None" = None,
        timeout_seconds: float = 10.0,
        ttl_seconds: float = 30.0,
    ):
        self.redis = redis
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = ttl_seconds
        self._local = KeyedLock()

    @asynccontextmanager
    async def hold(self, user_id: UUID, course_id: UUID) -> AsyncIterator[None]:
        """Hold the enrollment lock for (user_id, course_id).

        Raises:
            LockTimeoutError: If either lock layer times out
        """
        key = enrollment_lock_name(user_id, course_id)
        async with self._local.acquire(key, self.timeout_seconds):
            if self.redis is None:
                yield
            else:
                async with self._distributed(key):
                    yield

    @asynccontextmanager
    async def _distributed(self, key: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            key,
            timeout=self.ttl_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        if not await lock.acquire():
            raise LockTimeoutError(key)
        renewal = asyncio.create_task(self._keep_alive(lock, key))
        try:
            yield
        finally:
            renewal.cancel()
            try:
                await renewal
            except asyncio.CancelledError:
                pass
            try:
                await lock.release()
            except LockError as e:
                # TTL elapsed while held; another worker may own it now
                logger.warning("distributed_lock_release_failed", key=key, error=str(e))

    async def _keep_alive(self, lock: "Lock", key: str) -> None:
        """Reset the lock TTL every third of it while the holder works."""
        while True:
            await asyncio.sleep(self.ttl_seconds / 3)
            try:
                await lock.reacquire()
            except LockError as e:
                logger.warning("distributed_lock_lost", key=key, error=str(e))
                return
