"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from studyhall.advisor.client import AdvisorClient, create_advisor_client
from studyhall.redis_client import get_redis as _get_redis


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield _get_redis()


def get_advisor() -> AdvisorClient:
    """Advisor client built from settings."""
    return create_advisor_client()
