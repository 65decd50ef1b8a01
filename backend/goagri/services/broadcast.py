"""Outbound notifications for dashboards and badges.

Events are published as JSON on a Redis pub/sub channel; the realtime
gateway fans them out to connected admin clients.  Message shape:

    {"event": "product.created", "payload": {...}, "ts": "2026-01-01T00:00:00+00:00"}

Publishing is best effort.  A Redis outage is logged and otherwise
ignored, and nothing is published until the triggering change has been
committed, so a subscriber that re-reads the API sees what it was told.
"""

import json
import logging
from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.config import settings
from goagri.models.activity_log import ActivityLog, LogStatus
from goagri.utils.redis_pool import get_redis

logger = logging.getLogger("goagri.broadcast")


class Broadcaster:
    """Publish domain events to the realtime channel."""

    def __init__(self, channel: str | None = None, enabled: bool | None = None):
        self.channel = channel or settings.broadcast_channel
        self.enabled = settings.broadcast_enabled if enabled is None else enabled

    async def publish(self, event: str, payload: dict) -> bool:
        """Publish one event. Returns False if it was not delivered to Redis."""
        if not self.enabled:
            return False

        message = json.dumps({
            "event": event,
            "payload": jsonable_encoder(payload),
            "ts": datetime.now(timezone.utc).isoformat(),
        })
        try:
            client = await get_redis()
            await client.publish(self.channel, message)
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Broadcast of {event} failed (ignored): {e}")
            return False

        logger.debug(f"Broadcast {event} on {self.channel}")
        return True


_broadcaster = Broadcaster()


def get_broadcaster() -> Broadcaster:
    """FastAPI dependency returning the process-wide broadcaster."""
    return _broadcaster


async def count_pending(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(ActivityLog)
        .where(ActivityLog.status == LogStatus.PENDING.value)
    )
    return result.scalar() or 0


async def announce_pending(
    db: AsyncSession,
    broadcaster: Broadcaster,
    log: ActivityLog,
) -> None:
    """Tell badge subscribers a new action is waiting for review."""
    await broadcaster.publish(
        "activity_log.pending",
        {
            "log_id": log.id,
            "action": log.action,
            "entity": log.entity,
            "entity_id": log.entity_id,
            "pending_count": await count_pending(db),
        },
    )


async def announce_mutation(
    db: AsyncSession,
    broadcaster: Broadcaster,
    *,
    gated: bool,
    log: ActivityLog | None,
    event: str,
    payload: dict,
) -> None:
    """Publish the outcome of an admin mutation once it has been committed.

    Applied changes go out as the entity event; deferred ones only bump
    the pending badge.
    """
    if not gated:
        await broadcaster.publish(event, payload)
    elif log is not None and log.is_pending:
        await announce_pending(db, broadcaster, log)


async def announce_review(
    db: AsyncSession,
    broadcaster: Broadcaster,
    log: ActivityLog,
) -> None:
    await broadcaster.publish(
        f"activity_log.{log.status.lower()}",
        {
            "log_id": log.id,
            "action": log.action,
            "entity": log.entity,
            "entity_id": log.entity_id,
            "reviewed_by": log.reviewed_by_name,
            "pending_count": await count_pending(db),
        },
    )
