"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata, an in-memory Redis double and a mocked advisor.
"""

from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

TEST_SECRET = "studyhall-test-secret-0123456789abcdef"
os.environ["STUDYHALL_JWT_SECRET"] = TEST_SECRET
os.environ["STUDYHALL_LOG_FORMAT"] = "console"

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from redis.exceptions import WatchError  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from studyhall.advisor.client import AdvisorClient  # noqa: E402
from studyhall.config import get_settings  # noqa: E402
from studyhall.database import get_session  # noqa: E402
from studyhall.db.models import Base, Subject, Topic  # noqa: E402
from studyhall.dependencies import get_advisor, get_redis_dep  # noqa: E402
from studyhall.gamification.seed import seed_badges  # noqa: E402

get_settings.cache_clear()

LEARNER_ID = "learner-0001"


class InMemoryRedis:
    """Just enough of redis.asyncio.Redis for the session store and pub/sub."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.published: list[tuple[str, dict]] = []

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for k in keys if self.store.pop(k, None) is not None)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, json.loads(message)))
        return 1

    async def ping(self) -> bool:
        return True

    def pipeline(self, transaction: bool = True) -> InMemoryPipeline:
        return InMemoryPipeline(self)

    def events(self, channel: str) -> list[dict]:
        return [payload for ch, payload in self.published if ch == channel]


class InMemoryPipeline:
    """WATCH/MULTI/EXEC over InMemoryRedis; EXEC fails if a watched key changed."""

    def __init__(self, redis: InMemoryRedis) -> None:
        self.redis = redis
        self.watched: dict[str, str | None] = {}
        self.queued: list[tuple[str, str]] = []

    async def __aenter__(self) -> InMemoryPipeline:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.watched.clear()
        self.queued.clear()

    async def watch(self, *keys: str) -> None:
        for key in keys:
            self.watched[key] = self.redis.store.get(key)

    async def unwatch(self) -> None:
        self.watched.clear()

    async def get(self, key: str) -> str | None:
        return await self.redis.get(key)

    def multi(self) -> None:
        self.queued.clear()

    def set(self, key: str, value: str, ex: int | None = None) -> InMemoryPipeline:
        self.queued.append((key, value))
        return self

    async def execute(self) -> list[bool]:
        if any(self.redis.store.get(k) != v for k, v in self.watched.items()):
            raise WatchError("Watched variable changed.")
        for key, value in self.queued:
            self.redis.store[key] = value
        return [True] * len(self.queued)


def make_token(
    learner_id: str = LEARNER_ID,
    grade_level: str | None = "high_school",
    expires_in: int = 3600,
    secret: str = TEST_SECRET,
) -> str:
    now = datetime.now(timezone.utc)
    claims: dict = {
        "sub": learner_id,
        "aud": "authenticated",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    if grade_level is not None:
        claims["user_metadata"] = {"grade_level": grade_level}
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def advisor() -> AsyncMock:
    mock = AsyncMock(spec=AdvisorClient)
    mock.generate_quiz.return_value = [
        {"question": "2 + 2 = ?", "options": ["3", "4", "5", "6"], "correctIndex": 1, "explanation": "Sum."},
        {"question": "3 * 3 = ?", "options": ["6", "9"], "correctIndex": 1, "explanation": "Product."},
        {"question": "10 / 2 = ?", "options": ["5", "2", "20"], "correctIndex": 0, "explanation": "Quotient."},
    ]
    mock.ask_tutor.return_value = "Keep going, you are doing great."
    return mock


@pytest_asyncio.fixture
async def seeded(db_session: AsyncSession) -> dict:
    """Two subjects, badges seeded.

    Mathematics topics use order_index 1, 2 and 4 (a gap between 2 and 4).
    """
    math = Subject(id="subj-math", name="Mathematics", description="Numbers")
    science = Subject(id="subj-sci", name="Science", description="Nature")
    db_session.add_all([math, science])
    db_session.add_all([
        Topic(id="t-add", subject_id=math.id, title="Addition", content="Adding numbers", order_index=1),
        Topic(id="t-mul", subject_id=math.id, title="Multiplication", content="Repeated addition", order_index=2),
        Topic(id="t-frac", subject_id=math.id, title="Fractions", content="Parts of a whole", order_index=4),
        Topic(id="t-cell", subject_id=science.id, title="Cells", content="Units of life", order_index=1),
    ])
    await db_session.commit()
    await seed_badges(db_session)
    return {"math": math.id, "science": science.id, "topics": ["t-add", "t-mul", "t-frac"], "cell": "t-cell"}


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    redis: InMemoryRedis,
    advisor: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with DB, Redis and advisor overridden."""
    from studyhall.main import create_app

    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def _redis() -> AsyncGenerator[object, None]:
        yield redis

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_redis_dep] = _redis
    app.dependency_overrides[get_advisor] = lambda: advisor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, seeded: dict) -> AsyncClient:
    """Client with a valid learner token and seeded content."""
    client.headers["Authorization"] = f"Bearer {make_token()}"
    return client
