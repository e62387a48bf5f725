"""WebSocket stream transport (aiohttp)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from chat_sync.application.exceptions import TransportError
from chat_sync.application.ports.transport import InboundHandler, ReconnectCallback, Unsubscribe
from chat_sync.config import Settings, settings as default_settings
from chat_sync.infrastructure.bus.dispatch import EventFanout, calc_backoff
from chat_sync.infrastructure.bus.serializer import serialize_event

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Implements application.ports.transport.StreamTransport.

    Drops are repaired transparently: the reader reconnects with
    exponential backoff and then runs the registered reconnect callbacks.
    """

    def __init__(
        self,
        url: str,
        token: str = "",
        *,
        heartbeat: float = 30.0,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        shared: bool = False,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.shared = shared
        self._url = url
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._heartbeat = heartbeat
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._fanout = EventFanout()
        self._closing = False

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> WebSocketTransport:
        return cls(
            settings.WS_URL,
            settings.TOKEN,
            heartbeat=settings.WS_HEARTBEAT_SECONDS,
            base_delay=settings.RECONNECT_BASE_DELAY,
            max_delay=settings.RECONNECT_MAX_DELAY,
        )

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        if self.connected:
            return
        self._closing = False
        await self._open()
        self._reader = asyncio.create_task(self._read_loop(), name="ws-transport-reader")
        logger.info("WS connected to %s", self._url)

    async def _open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        try:
            self._ws = await self._session.ws_connect(
                self._url, heartbeat=self._heartbeat, headers=self._headers,
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise TransportError(f"cannot connect to {self._url}: {exc}") from exc

    async def _read_loop(self) -> None:
        while not self._closing:
            ws = self._ws
            if ws is not None:
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        self._fanout.dispatch_raw(msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        logger.warning("WS error: %s", ws.exception())
                        break
                if not ws.closed:
                    await ws.close()
            if self._closing:
                return
            await self._reconnect()

    async def _reconnect(self) -> None:
        attempts = 0
        while not self._closing:
            delay = calc_backoff(attempts, self._base_delay, self._max_delay)
            logger.info("WS dropped, reconnecting in %.1fs", delay.total_seconds())
            await asyncio.sleep(delay.total_seconds())
            try:
                await self._open()
            except TransportError as exc:
                attempts += 1
                logger.warning("WS reconnect attempt %d failed: %s", attempts, exc.detail)
                continue
            logger.info("WS reconnected after %d failed attempt(s)", attempts)
            await self._fanout.notify_reconnect()
            return

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportError(f"cannot emit {event!r}: not connected")
        try:
            await ws.send_str(serialize_event(event, data))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise TransportError(f"emit {event!r} failed: {exc}") from exc

    def subscribe(self, handler: InboundHandler) -> Unsubscribe:
        return self._fanout.subscribe(handler)

    def on_reconnect(self, callback: ReconnectCallback) -> Unsubscribe:
        return self._fanout.on_reconnect(callback)

    async def disconnect(self) -> None:
        if self._closing and self._ws is None:
            return
        self._closing = True
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        self._fanout.clear()
        logger.info("WS disconnected from %s", self._url)
