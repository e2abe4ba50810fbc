"""Redis Pub/Sub fan-out for running several server processes.

Every process publishes its events to one channel instead of writing to
sockets directly, and every process relays what it hears on that channel
to the sockets it holds. Presence and typing state stay per process.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from chat_relay.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

RESUBSCRIBE_DELAY_SECONDS = 1.0


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventFanout."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def publish(
        self,
        event_type: str,
        data: dict[str, Any] | list[Any],
        *,
        targets: Collection[str] | None = None,
    ) -> None:
        await self._redis.publish(self._channel, serialize_event(event_type, data, targets))


RelayCallback = Callable[
    [str, dict[str, Any] | list[Any], list[str] | None],
    Coroutine[Any, Any, None],
]


class RedisPubSubSubscriber:
    """Relays channel events to local sockets until stopped.

    A dropped Redis connection is retried with a fixed delay; events
    published while disconnected are lost (Pub/Sub keeps no backlog).
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        relay: RelayCallback,
        *,
        resubscribe_delay: float = RESUBSCRIBE_DELAY_SECONDS,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._relay = relay
        self._resubscribe_delay = resubscribe_delay
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-fanout-subscriber")
        logger.info("Fan-out subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Fan-out subscriber stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._consume()
            except RedisConnectionError as exc:
                logger.warning(
                    "Fan-out channel lost (%s); resubscribing in %.1fs",
                    exc, self._resubscribe_delay,
                )
                await asyncio.sleep(self._resubscribe_delay)

    async def _consume(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self.handle(message["data"])
        finally:
            await pubsub.aclose()

    async def handle(self, raw: str | bytes) -> None:
        """Relay one channel payload. A bad payload is logged and skipped."""
        try:
            event_type, data, targets = deserialize_event(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Dropping malformed fan-out payload")
            return
        try:
            await self._relay(event_type, data, targets)
        except Exception:
            logger.exception("Relaying %s failed", event_type)
