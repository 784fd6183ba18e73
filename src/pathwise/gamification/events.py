"""Post-commit event broadcast via Redis pub/sub."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

CHANNEL_LEVEL_UP = "pubsub:level_up"
CHANNEL_ACHIEVEMENT_UNLOCKED = "pubsub:achievement_unlocked"
CHANNEL_STREAK_UPDATE = "pubsub:streak_update"


async def publish_events(redis: object | None, events: list[tuple[str, dict[str, Any]]]) -> int:
    """Publish committed events. Returns the number published.

    Failures are logged and swallowed: the state change already committed
    and a missed broadcast must not turn it into an error.
    """
    if redis is None or not events:
        return 0

    published = 0
    for channel, payload in events:
        try:
            await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[union-attr]
            published += 1
        except Exception:
            logger.warning("Failed to publish %s broadcast", channel, exc_info=True)
    return published
