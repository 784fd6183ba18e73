"""Per-learner locks, in-process and Redis-backed."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from pathwise.exceptions import ConcurrentModificationError, StorageUnavailableError
from pathwise.gamification.locks import LearnerLocks


def fake_redis(acquired: bool = True) -> tuple[MagicMock, MagicMock]:
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired)
    lock.release = AsyncMock()
    redis = MagicMock()
    redis.lock.return_value = lock
    return redis, lock


class TestLocalLocks:

    @pytest.mark.asyncio
    async def test_serializes_same_learner(self):
        locks = LearnerLocks()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold(1):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_different_learners_do_not_block(self):
        locks = LearnerLocks(blocking_timeout=0.05)
        async with locks.hold(1):
            async with locks.hold(2):
                pass

    @pytest.mark.asyncio
    async def test_busy_learner_times_out(self):
        locks = LearnerLocks(blocking_timeout=0.05)
        async with locks.hold(1):
            with pytest.raises(ConcurrentModificationError):
                async with locks.hold(1):
                    pass

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        locks = LearnerLocks(blocking_timeout=0.05)
        with pytest.raises(RuntimeError):
            async with locks.hold(1):
                raise RuntimeError("boom")
        async with locks.hold(1):
            pass


class TestRedisLocks:

    @pytest.mark.asyncio
    async def test_acquires_and_releases(self):
        redis, lock = fake_redis()
        locks = LearnerLocks(redis=redis, timeout=7.0, blocking_timeout=2.0)

        async with locks.hold(42):
            pass

        redis.lock.assert_called_once_with("lock:learner:42", timeout=7.0, blocking_timeout=2.0)
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_acquired_is_concurrent_modification(self):
        redis, lock = fake_redis(acquired=False)
        with pytest.raises(ConcurrentModificationError):
            async with LearnerLocks(redis=redis).hold(1):
                pass
        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_down_is_storage_unavailable(self):
        redis, lock = fake_redis()
        lock.acquire.side_effect = RedisConnectionError("refused")
        with pytest.raises(StorageUnavailableError):
            async with LearnerLocks(redis=redis).hold(1):
                pass

    @pytest.mark.asyncio
    async def test_expired_lock_release_is_not_an_error(self):
        redis, lock = fake_redis()
        lock.release.side_effect = LockError("expired")
        async with LearnerLocks(redis=redis).hold(1):
            pass
        lock.release.assert_awaited_once()
