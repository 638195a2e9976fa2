"""Redis storage for in-flight quiz sessions.

Sessions are ephemeral: they live under a TTL and are never written to the
relational store. Only the finished attempt is persisted.
"""

from __future__ import annotations

import json
import logging

from redis.exceptions import WatchError

from studyhall.quiz.session import QuizPhase, QuizSession

logger = logging.getLogger(__name__)


def _key(learner_id: str, session_id: str) -> str:
    return f"quiz:session:{learner_id}:{session_id}"


class QuizSessionStore:
    """JSON-serialized sessions keyed by learner and session id."""

    def __init__(self, redis: object, ttl_seconds: int = 3600) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def save(self, session: QuizSession) -> bool:
        """Write the session unless the stored copy already reached ``results``.

        The read and the write run in one WATCH/MULTI transaction. Returns
        False when the write was refused, either because the stored session
        is finished or because another writer touched the key in between.
        """
        key = _key(session.learner_id, session.session_id)
        async with self.redis.pipeline(transaction=True) as pipe:  # type: ignore[attr-defined]
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is not None and json.loads(raw)["phase"] == QuizPhase.RESULTS.value:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, json.dumps(session.to_dict()), ex=self.ttl_seconds)
                await pipe.execute()
            except WatchError:
                logger.info("Quiz session %s changed concurrently; write dropped", session.session_id)
                return False
        return True

    async def load(self, learner_id: str, session_id: str) -> QuizSession | None:
        raw = await self.redis.get(_key(learner_id, session_id))  # type: ignore[attr-defined]
        if raw is None:
            return None
        return QuizSession.from_dict(json.loads(raw))
