"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from chat_sync.application.exceptions import RequestError, TransportError
from chat_sync.application.ports.transport import InboundHandler, ReconnectCallback, Unsubscribe
from chat_sync.config import Settings
from chat_sync.domain.entities.conversation import ConversationSummary
from chat_sync.domain.entities.message import Media, Message, Reaction, Sender
from chat_sync.domain.entities.user import User
from chat_sync.domain.value_objects.enums import ClientEvent, MessageKind, ServerEvent
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId
from chat_sync.services.conversation_client import ClientConfig, ConversationClient, ConversationHandle

CONV = ConversationId("c1")
ME = UserId("u1")
OTHER = UserId("u2")

BASE_TIME = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=Path(__file__).resolve().parent / ".env.test")


def make_message(
    message_id: str = "m1",
    *,
    conversation_id: str = CONV,
    sender_id: str = OTHER,
    text: str | None = "hello",
    timestamp: datetime | None = None,
    reactions: tuple[Reaction, ...] = (),
    media: Media | None = None,
    deleted: bool = False,
) -> Message:
    return Message(
        id=MessageId(message_id),
        conversation_id=ConversationId(conversation_id),
        sender=Sender(id=UserId(sender_id), display_name=f"user {sender_id}"),
        timestamp=timestamp or BASE_TIME,
        text=text,
        media=media,
        kind=MessageKind.TEXT,
        reactions=reactions,
        deleted=deleted,
    )


def wire_message(
    message_id: str = "m1",
    *,
    conversation_id: str | None = CONV,
    sender_id: str = OTHER,
    text: str = "hello",
    timestamp: datetime | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """A message document as the backend sends it."""
    doc: dict[str, Any] = {
        "_id": message_id,
        "sender": {"_id": sender_id, "name": f"user {sender_id}", "onlineStatus": True},
        "text": text,
        "type": "text",
        "reactions": [],
        "timestamp": (timestamp or BASE_TIME).isoformat(),
    }
    if conversation_id is not None:
        doc["chatId"] = conversation_id
    doc.update(extra)
    return doc


@dataclass
class FixedClock:
    current: datetime = BASE_TIME

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeHub:
    """Stands in for the server side of the stream.

    Echoes ``sendMessage`` as ``newMessage`` and ``deleteMessage`` as
    ``messageDeleted`` to every attached transport. With ``bare_deletes``
    the delete carries only ``messageId``.
    """

    def __init__(self, *, bare_deletes: bool = False) -> None:
        self.transports: list[FakeTransport] = []
        self.bare_deletes = bare_deletes
        self._ids = itertools.count(1)

    def broadcast(self, event: str, data: dict[str, Any]) -> None:
        for transport in list(self.transports):
            if transport.connected:
                transport.deliver(event, data)

    def on_emit(self, transport: FakeTransport, event: str, data: dict[str, Any]) -> None:
        if event == ClientEvent.SEND_MESSAGE:
            doc = wire_message(
                f"srv-{next(self._ids)}",
                conversation_id=data["conversationId"],
                sender_id=transport.user_id,
                text=data["text"],
            )
            doc["type"] = data["kind"]
            if "mediaUrl" in data:
                doc["mediaUrl"] = data["mediaUrl"]
                doc["mediaType"] = data.get("mediaKind")
            self.broadcast(ServerEvent.NEW_MESSAGE, doc)
        elif event == ClientEvent.DELETE_MESSAGE:
            payload = {"messageId": data["messageId"]}
            if not self.bare_deletes:
                payload["conversationId"] = data["conversationId"]
            self.broadcast(ServerEvent.MESSAGE_DELETED, payload)


class FakeTransport:
    def __init__(self, *, shared: bool = False, hub: FakeHub | None = None, user_id: str = ME) -> None:
        self.shared = shared
        self.user_id = user_id
        self.hub = hub
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.fail_connect = False
        self.fail_emit = False
        self._connected = False
        self._handlers: list[InboundHandler] = []
        self._reconnect_callbacks: list[ReconnectCallback] = []
        if hub is not None:
            hub.transports.append(self)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise TransportError("connection refused")
        self._connected = True

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        if self.fail_emit or not self._connected:
            raise TransportError(f"cannot emit {event}")
        self.emitted.append((event, data))
        if self.hub is not None:
            self.hub.on_emit(self, event, data)

    def subscribe(self, handler: InboundHandler) -> Unsubscribe:
        self._handlers.append(handler)
        return lambda: self._handlers.remove(handler) if handler in self._handlers else None

    def on_reconnect(self, callback: ReconnectCallback) -> Unsubscribe:
        self._reconnect_callbacks.append(callback)
        return lambda: self._reconnect_callbacks.remove(callback) if callback in self._reconnect_callbacks else None

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def deliver(self, event: str, data: dict[str, Any]) -> None:
        for handler in list(self._handlers):
            handler(event, data)

    async def simulate_reconnect(self) -> None:
        for callback in list(self._reconnect_callbacks):
            await callback()

    def events(self, name: str) -> list[dict[str, Any]]:
        return [data for event, data in self.emitted if event == name]


@dataclass
class FakeChatApi:
    history: dict[str, list[Message]] = field(default_factory=dict)
    history_error: RequestError | None = None
    delete_error: RequestError | None = None
    react_result: Message | None = None
    conversations: list[ConversationSummary] = field(default_factory=list)
    users: dict[str, User] = field(default_factory=dict)
    uploaded: list[tuple[str, str]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    history_calls: int = 0
    history_gate: asyncio.Event | None = None
    delete_gate: asyncio.Event | None = None

    async def fetch_history(self, conversation_id: ConversationId) -> list[Message]:
        self.history_calls += 1
        if self.history_gate is not None:
            await self.history_gate.wait()
        if self.history_error is not None:
            raise self.history_error
        return list(self.history.get(conversation_id, []))

    async def delete_message(self, message_id: MessageId) -> None:
        if self.delete_gate is not None:
            await self.delete_gate.wait()
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(message_id)

    async def list_conversations(self) -> list[ConversationSummary]:
        return list(self.conversations)

    async def start_direct(self, recipient_id: UserId) -> ConversationId:
        return ConversationId(f"direct-{ME}-{recipient_id}")

    async def react(self, message_id: MessageId, emoji: str) -> Message:
        assert self.react_result is not None
        return self.react_result

    async def upload_media(self, data: bytes, filename: str, content_type: str) -> Media:
        self.uploaded.append((filename, content_type))
        return Media(url=f"/uploads/{filename}", kind=content_type)

    async def fetch_user(self, user_id: UserId) -> User:
        return self.users[user_id]


async def drain(handle: ConversationHandle) -> None:
    """Let the consumer task apply everything queued so far."""
    for _ in range(100):
        await asyncio.sleep(0)
        if handle._queue.empty():
            break
    await asyncio.sleep(0)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def api() -> FakeChatApi:
    return FakeChatApi()


@pytest.fixture
def client(transport: FakeTransport, api: FakeChatApi, clock: FixedClock) -> ConversationClient:
    return ConversationClient(ClientConfig(current_user_id=ME, transport=transport, api=api, clock=clock))
