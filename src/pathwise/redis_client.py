"""Optional Redis client shared by the learner locks and event broadcast.

Redis is off when ``PATHWISE_REDIS_URL`` is empty: locks fall back to
in-process ``asyncio.Lock``s and nothing is published.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

_pool: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> None:
    """Connect to ``url``; a no-op for an empty URL."""
    global _pool  # noqa: PLW0603
    if not url:
        _pool = None
        return
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis_optional() -> redis.Redis | None:
    """The Redis client, or None when Redis is disabled."""
    return _pool


async def redis_status() -> str:
    """``ok``, ``disabled`` or ``error: ...`` for the readiness probe."""
    if _pool is None:
        return "disabled"
    try:
        await _pool.ping()
    except RedisError as exc:
        return f"error: {exc}"
    return "ok"
