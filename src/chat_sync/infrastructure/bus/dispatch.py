"""Subscriber bookkeeping shared by the stream transports."""
from __future__ import annotations

import logging
from datetime import timedelta

from chat_sync.application.exceptions import DecodeError
from chat_sync.application.ports.transport import InboundHandler, ReconnectCallback, Unsubscribe
from chat_sync.infrastructure.bus.serializer import deserialize_event

logger = logging.getLogger(__name__)


def calc_backoff(attempts: int, base_delay: float, max_delay: float) -> timedelta:
    delay = min(base_delay * (2 ** attempts), max_delay)
    return timedelta(seconds=delay)


class EventFanout:
    """Decodes raw frames and hands them to every subscriber in order."""

    def __init__(self) -> None:
        self._handlers: list[InboundHandler] = []
        self._reconnect_callbacks: list[ReconnectCallback] = []

    def subscribe(self, handler: InboundHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def on_reconnect(self, callback: ReconnectCallback) -> Unsubscribe:
        self._reconnect_callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._reconnect_callbacks:
                self._reconnect_callbacks.remove(callback)

        return _unsubscribe

    def clear(self) -> None:
        self._handlers.clear()
        self._reconnect_callbacks.clear()

    def dispatch_raw(self, raw: str | bytes) -> None:
        try:
            event, data = deserialize_event(raw)
        except DecodeError as exc:
            logger.warning("Dropping undecodable frame: %s", exc.detail)
            return
        for handler in list(self._handlers):
            try:
                handler(event, data)
            except Exception:
                logger.exception("Subscriber failed on %r", event)

    async def notify_reconnect(self) -> None:
        for callback in list(self._reconnect_callbacks):
            try:
                await callback()
            except Exception:
                logger.exception("Reconnect callback failed")
