"""Tests for per-enrollment locking."""

import asyncio
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import fakeredis
import pytest
from redis.exceptions import LockError

from src.core.locks import EnrollmentLocks, KeyedLock, LockTimeoutError
from src.core.redis import enrollment_lock_name


@pytest.fixture
def mock_redis():
    """Mock Redis client whose locks are always granted."""
    lock = Mock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    lock.reacquire = AsyncMock()
    redis_mock = Mock()
    redis_mock.lock = Mock(return_value=lock)
    return redis_mock


@pytest.mark.asyncio
class TestKeyedLock:
    """Tests for KeyedLock."""

    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.acquire("k"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-in", "a-out", "b-in", "b-out"]

    async def test_different_keys_do_not_contend(self):
        locks = KeyedLock()

        async with locks.acquire("a"):
            async with locks.acquire("b", timeout=0.01):
                assert len(locks) == 2

    async def test_timeout(self):
        locks = KeyedLock()

        async with locks.acquire("k"):
            with pytest.raises(LockTimeoutError) as exc_info:
                async with locks.acquire("k", timeout=0.01):
                    pass

        assert exc_info.value.key == "k"

    async def test_unused_locks_are_dropped(self):
        locks = KeyedLock()

        async with locks.acquire("k"):
            pass
        with pytest.raises(RuntimeError):
            async with locks.acquire("k"):
                raise RuntimeError("boom")

        assert len(locks) == 0


@pytest.mark.asyncio
class TestEnrollmentLocks:
    """Tests for EnrollmentLocks."""

    async def test_local_only(self):
        locks = EnrollmentLocks()

        async with locks.hold(uuid4(), uuid4()):
            pass

    async def test_distributed_lock(self, mock_redis):
        user_id, course_id = uuid4(), uuid4()
        locks = EnrollmentLocks(redis=mock_redis, timeout_seconds=2.0, ttl_seconds=5.0)

        async with locks.hold(user_id, course_id):
            pass

        mock_redis.lock.assert_called_once_with(
            enrollment_lock_name(user_id, course_id),
            timeout=5.0,
            blocking_timeout=2.0,
        )
        mock_redis.lock.return_value.release.assert_awaited_once()

    async def test_distributed_lock_not_granted(self, mock_redis):
        mock_redis.lock.return_value.acquire.return_value = False
        locks = EnrollmentLocks(redis=mock_redis)

        with pytest.raises(LockTimeoutError):
            async with locks.hold(uuid4(), uuid4()):
                pass

    async def test_expired_distributed_lock_is_not_fatal(self, mock_redis):
        mock_redis.lock.return_value.release.side_effect = LockError("expired")
        locks = EnrollmentLocks(redis=mock_redis)

        async with locks.hold(uuid4(), uuid4()):
            pass

    async def test_lock_ttl_is_renewed_while_held(self, mock_redis):
        locks = EnrollmentLocks(redis=mock_redis, ttl_seconds=0.06)

        async with locks.hold(uuid4(), uuid4()):
            await asyncio.sleep(0.1)

        assert mock_redis.lock.return_value.reacquire.await_count >= 2

    async def test_lost_lock_stops_renewal(self, mock_redis):
        lock = mock_redis.lock.return_value
        lock.reacquire.side_effect = LockError("not owned")
        locks = EnrollmentLocks(redis=mock_redis, ttl_seconds=0.03)

        async with locks.hold(uuid4(), uuid4()):
            await asyncio.sleep(0.1)

        lock.reacquire.assert_awaited_once()

    async def test_workers_never_overlap_past_ttl(self):
        server = fakeredis.FakeServer()
        user_id, course_id = uuid4(), uuid4()
        holders = 0
        seen: list[int] = []

        async def worker(delay: float) -> None:
            nonlocal holders
            locks = EnrollmentLocks(
                redis=fakeredis.FakeAsyncRedis(server=server),
                timeout_seconds=2.0,
                ttl_seconds=0.2,
            )
            await asyncio.sleep(delay)
            async with locks.hold(user_id, course_id):
                holders += 1
                seen.append(holders)
                await asyncio.sleep(0.6)
                holders -= 1

        await asyncio.gather(worker(0), worker(0.05))

        assert seen == [1, 1]


def test_lock_name():
    user_id, course_id = uuid4(), uuid4()

    assert enrollment_lock_name(user_id, course_id) == (
        f"enrollments:lock:{user_id}:{course_id}"
    )
