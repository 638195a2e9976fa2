"""Best-effort domain event publishing over Redis pub/sub."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

PROGRESS_CHANGED = "pubsub:progress_changed"
BADGE_EARNED = "pubsub:badge_earned"
LEVEL_UP = "pubsub:level_up"
QUIZ_COMPLETED = "pubsub:quiz_completed"


async def publish_event(redis: object | None, channel: str, payload: dict[str, Any]) -> bool:
    """Publish ``payload`` as JSON on ``channel``. Returns False if nothing was sent.

    Consumers only refresh views from these events, so a failed publish is
    logged and never fails the calling transaction.
    """
    if redis is None:
        return False
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s event", channel, exc_info=True)
        return False
    return True
