"""
Redis pub/sub fan-out for operator notifications and booking changes.

Two channels are used:

* ``admin:notifications`` -- success / error toasts for whoever started
  the action.
* ``bookings:changes``    -- one message per successful stage change or
  assignment, so every open view of a booking can re-read it.

Publishing is fire-and-forget: a Redis failure is logged and never turns
a completed workflow write into an error.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.config import settings

logger = logging.getLogger(__name__)

_pool = aioredis.ConnectionPool.from_url(settings.redis_url, decode_responses=True)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    await _pool.disconnect()


class NotificationSink(Protocol):
    async def notify_success(self, message: str, **context: Any) -> None: ...

    async def notify_error(self, message: str, **context: Any) -> None: ...

    async def booking_changed(self, booking_id: str, stage: str) -> None: ...


class RedisEventPublisher:
    def __init__(
        self,
        client: aioredis.Redis,
        notification_channel: str = settings.notification_channel,
        booking_channel: str = settings.booking_events_channel,
    ):
        self.redis = client
        self.notification_channel = notification_channel
        self.booking_channel = booking_channel

    async def _publish(self, channel: str, payload: dict[str, Any]) -> None:
        payload["sentAt"] = datetime.now(timezone.utc).isoformat()
        try:
            await self.redis.publish(channel, json.dumps(payload, default=str))
        except RedisError:
            logger.warning("Dropped message on %s", channel, exc_info=True)

    async def notify_success(self, message: str, **context: Any) -> None:
        await self._publish(
            self.notification_channel,
            {"level": "success", "message": message, **context},
        )

    async def notify_error(self, message: str, **context: Any) -> None:
        await self._publish(
            self.notification_channel,
            {"level": "error", "message": message, **context},
        )

    async def booking_changed(self, booking_id: str, stage: str) -> None:
        await self._publish(
            self.booking_channel,
            {"event": "booking.updated", "bookingId": booking_id, "stage": stage},
        )
