"""Per-learner serialization of read-modify-write sequences."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from redis.exceptions import LockError, RedisError

from pathwise.exceptions import ConcurrentModificationError, StorageUnavailableError

logger = logging.getLogger(__name__)


class LearnerLocks:
    """Hands out one lock per learner.

    With a Redis client the lock is a ``redis.asyncio`` ``Lock`` shared by
    every API process; without one it is an ``asyncio.Lock`` local to this
    process. Either way, waiting longer than ``blocking_timeout`` seconds
    raises ``ConcurrentModificationError``.
    """

    def __init__(
        self,
        redis: object | None = None,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
        prefix: str = "lock:learner:",
    ) -> None:
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.prefix = prefix
        self._local: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def _local_lock(self, learner_id: int) -> asyncio.Lock:
        lock = self._local.get(learner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._local[learner_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, learner_id: int) -> AsyncIterator[None]:
        if self.redis is None:
            async with self._hold_local(learner_id):
                yield
        else:
            async with self._hold_redis(learner_id):
                yield

    @asynccontextmanager
    async def _hold_local(self, learner_id: int) -> AsyncIterator[None]:
        lock = self._local_lock(learner_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
        except asyncio.TimeoutError as e:
            raise ConcurrentModificationError(
                f"Learner {learner_id} is busy, try again"
            ) from e
        try:
            yield
        finally:
            lock.release()

    @asynccontextmanager
    async def _hold_redis(self, learner_id: int) -> AsyncIterator[None]:
        name = f"{self.prefix}{learner_id}"
        lock = self.redis.lock(  # type: ignore[union-attr]
            name,
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise StorageUnavailableError("Lock service unavailable; no changes were applied") from e
        if not acquired:
            raise ConcurrentModificationError(f"Learner {learner_id} is busy, try again")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired before release; the work itself already finished
                logger.warning("Lock %s expired before release", name)
            except RedisError:
                logger.warning("Failed to release lock %s", name, exc_info=True)
