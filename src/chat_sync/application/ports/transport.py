from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

InboundHandler = Callable[[str, dict[str, Any]], None]
ReconnectCallback = Callable[[], Awaitable[None]]
Unsubscribe = Callable[[], None]


class StreamTransport(Protocol):
    """Bidirectional event channel.

    ``shared`` is true when one connection multiplexes several
    conversations; consumers must then filter inbound events by
    conversation id.
    """

    shared: bool

    @property
    def connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def emit(self, event: str, data: dict[str, Any]) -> None: ...

    def subscribe(self, handler: InboundHandler) -> Unsubscribe: ...

    def on_reconnect(self, callback: ReconnectCallback) -> Unsubscribe: ...

    async def disconnect(self) -> None: ...
