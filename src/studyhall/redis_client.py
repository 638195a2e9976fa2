"""Process-wide Redis client.

Redis holds in-flight quiz sessions and carries the pub/sub domain events;
nothing in it is authoritative, so losing it only loses unfinished quizzes.
"""

from __future__ import annotations

import redis.asyncio as redis

from studyhall.config import Settings

_client: redis.Redis | None = None


async def init_redis(settings: Settings) -> redis.Redis:
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout_seconds,
        health_check_interval=30,
    )
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """The shared client; raises if the app lifespan has not started."""
    if _client is None:
        raise RuntimeError("Redis client is not initialized; init_redis() runs in the app lifespan")
    return _client
