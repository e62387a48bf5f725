"""Redis Pub/Sub stream transport: one pooled connection, many conversations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from chat_sync.application.exceptions import TransportError
from chat_sync.application.ports.transport import InboundHandler, ReconnectCallback, Unsubscribe
from chat_sync.config import Settings, settings as default_settings
from chat_sync.infrastructure.bus.dispatch import EventFanout, calc_backoff
from chat_sync.infrastructure.bus.serializer import serialize_event

logger = logging.getLogger(__name__)


class RedisPubSubTransport:
    """Implements application.ports.transport.StreamTransport.

    Server events for every conversation arrive on one fan-out channel,
    so the transport is always ``shared``.
    """

    shared = True

    def __init__(
        self,
        redis: aioredis.Redis,
        inbound_channel: str,
        outbound_channel: str,
        *,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        owns_redis: bool = False,
    ) -> None:
        self._redis = redis
        self._inbound_channel = inbound_channel
        self._outbound_channel = outbound_channel
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._fanout = EventFanout()
        self._task: asyncio.Task[None] | None = None
        self._owns_redis = owns_redis

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> RedisPubSubTransport:
        redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls(
            redis,
            settings.REDIS_PUBSUB_CHANNEL,
            settings.REDIS_OUTBOUND_CHANNEL,
            base_delay=settings.RECONNECT_BASE_DELAY,
            max_delay=settings.RECONNECT_MAX_DELAY,
            owns_redis=True,
        )

    @property
    def connected(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self) -> None:
        if self.connected:
            return
        pubsub = await self._subscribe()
        self._task = asyncio.create_task(self._listen_forever(pubsub), name="redis-pubsub-transport")
        logger.info("Redis Pub/Sub transport listening on channel=%s", self._inbound_channel)

    async def _subscribe(self) -> PubSub:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self._inbound_channel)
        except (RedisError, OSError) as exc:
            await pubsub.aclose()
            raise TransportError(f"cannot subscribe to {self._inbound_channel}: {exc}") from exc
        return pubsub

    async def _listen_forever(self, pubsub: PubSub) -> None:
        while True:
            try:
                await self._listen(pubsub)
                return
            except (RedisError, OSError) as exc:
                logger.warning("Redis Pub/Sub dropped: %s", exc)
            pubsub = await self._resubscribe()
            await self._fanout.notify_reconnect()

    async def _resubscribe(self) -> PubSub:
        attempts = 0
        while True:
            delay = calc_backoff(attempts, self._base_delay, self._max_delay)
            await asyncio.sleep(delay.total_seconds())
            try:
                pubsub = await self._subscribe()
            except TransportError as exc:
                attempts += 1
                logger.warning("Redis resubscribe attempt %d failed: %s", attempts, exc.detail)
                continue
            logger.info("Redis Pub/Sub resubscribed to %s", self._inbound_channel)
            return pubsub

    async def _listen(self, pubsub: PubSub) -> None:
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                self._fanout.dispatch_raw(message["data"])
        finally:
            await pubsub.aclose()

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        try:
            await self._redis.publish(self._outbound_channel, serialize_event(event, data))
        except (RedisError, OSError) as exc:
            raise TransportError(f"emit {event!r} failed: {exc}") from exc

    def subscribe(self, handler: InboundHandler) -> Unsubscribe:
        return self._fanout.subscribe(handler)

    def on_reconnect(self, callback: ReconnectCallback) -> Unsubscribe:
        return self._fanout.on_reconnect(callback)

    async def disconnect(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._fanout.clear()
        if self._owns_redis:
            await self._redis.aclose()
        logger.info("Redis Pub/Sub transport stopped")
