"""Conversation view orchestration: connection lifecycle, snapshot, stream."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Callable

from chat_sync.application.dto.draft import MessageDraft
from chat_sync.application.dto.events import InboundEvent, MessageReceived, MessageRemoved, TypingChanged
from chat_sync.application.exceptions import DecodeError, RequestError, TransportError, ValidationError
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.application.ports.transport import StreamTransport, Unsubscribe
from chat_sync.config import Settings, settings as default_settings
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import ClientEvent, ConnectionState, MessageKind
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId
from chat_sync.infrastructure.log_context import conversation_id_ctx
from chat_sync.infrastructure.ws.protocol import (
    JoinChatPayload,
    SendMessagePayload,
    SetOnlinePayload,
    TypingPayload,
    parse_server_event,
)
from chat_sync.services.date_grouper import DisplayItem, group
from chat_sync.services.deletion import DeletionCoordinator
from chat_sync.services.message_store import MessageStore
from chat_sync.services.presence import PresenceTracker, TypingSignal

logger = logging.getLogger(__name__)

ChangeListener = Callable[["ConversationHandle"], None]


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Everything a client needs, passed in rather than looked up globally."""

    current_user_id: UserId
    transport: StreamTransport
    api: ChatApi
    clock: Clock = field(default_factory=SystemClock)
    resync_on_reconnect: bool = True
    typing_ttl_seconds: float | None = None
    announce_online: bool = True

    @classmethod
    def from_settings(
        cls,
        current_user_id: UserId,
        transport: StreamTransport,
        api: ChatApi,
        settings: Settings = default_settings,
    ) -> ClientConfig:
        return cls(
            current_user_id=current_user_id,
            transport=transport,
            api=api,
            resync_on_reconnect=settings.RESYNC_ON_RECONNECT,
            typing_ttl_seconds=settings.TYPING_TTL_SECONDS,
        )


class ConversationHandle:
    """Live state of one opened conversation.

    Once ``active`` is false nothing mutates the store again.
    """

    def __init__(
        self,
        conversation_id: ConversationId,
        presence: PresenceTracker,
        deletion: DeletionCoordinator,
        clock: Clock,
    ) -> None:
        self.conversation_id = conversation_id
        self.state = ConnectionState.IDLE
        self.store = MessageStore()
        self.presence = presence
        self.deletion = deletion
        self.history_error: RequestError | None = None
        self.history_loaded = False
        self.typing_signal = TypingSignal()
        self._clock = clock
        self._active = True
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._subscriptions: list[Unsubscribe] = []
        self._listeners: list[ChangeListener] = []
        self._fetches_in_flight = 0
        self._since_fetch: dict[MessageId, MessageReceived] = {}
        self._deleted_since_fetch: set[MessageId] = set()

    def __repr__(self) -> str:
        return f"ConversationHandle({self.conversation_id!r}, state={self.state.value})"

    @property
    def active(self) -> bool:
        return self._active

    def items(self, now: datetime | None = None) -> list[DisplayItem]:
        return group(self.store.ordered(), now or self._clock.now())

    def typing_users(self) -> frozenset[UserId]:
        return self.presence.typing_users()

    def add_listener(self, listener: ChangeListener) -> Unsubscribe:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Change listener failed")

    def _enqueue(self, event: str, data: dict[str, Any]) -> None:
        if self._active:
            self._queue.put_nowait((event, data))

    def _deactivate(self, state: ConnectionState) -> None:
        self._active = False
        self.state = state
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()
        self.presence.clear()
        self._listeners.clear()
        if self._consumer is not None:
            self._consumer.cancel()


class ConversationClient:
    """Keeps one conversation view in sync with the backend.

    One client drives at most one active conversation; opening another id
    closes the current one. Run several clients for several views.
    """

    def __init__(self, config: ClientConfig) -> None:
        self._config = config
        self._transport = config.transport
        self._api = config.api
        self._handle: ConversationHandle | None = None

    @property
    def handle(self) -> ConversationHandle | None:
        return self._handle

    async def open(self, conversation_id: ConversationId) -> ConversationHandle:
        current = self._handle
        if current is not None and current.active:
            if current.conversation_id == conversation_id:
                return current
            await self.close()

        handle = ConversationHandle(
            conversation_id,
            presence=PresenceTracker(
                self_id=self._config.current_user_id,
                ttl_seconds=self._config.typing_ttl_seconds,
                clock=self._config.clock,
            ),
            deletion=DeletionCoordinator(conversation_id, self._api, self._transport),
            clock=self._config.clock,
        )
        self._handle = handle
        handle.state = ConnectionState.CONNECTING
        handle._subscriptions.append(self._transport.subscribe(handle._enqueue))

        try:
            await self._transport.connect()
            if not handle.active:
                return handle
            if self._config.announce_online:
                await self._transport.emit(
                    ClientEvent.SET_ONLINE, SetOnlinePayload(user_id=self._config.current_user_id).dump(),
                )
            await self._join(handle)
        except TransportError:
            logger.warning("Opening %s failed", conversation_id)
            handle._deactivate(ConnectionState.ERROR)
            if self._handle is handle:
                self._handle = None
            raise

        if not handle.active:
            return handle
        handle._subscriptions.append(self._transport.on_reconnect(partial(self._on_reconnect, handle)))
        handle._consumer = asyncio.create_task(
            self._consume(handle), name=f"conversation-consumer-{conversation_id}",
        )
        handle.state = ConnectionState.READY
        logger.info("Conversation %s ready", conversation_id)

        await self.fetch_history(conversation_id)
        return handle

    async def _join(self, handle: ConversationHandle) -> None:
        await self._transport.emit(
            ClientEvent.JOIN_CHAT, JoinChatPayload(conversation_id=handle.conversation_id).dump(),
        )

    async def fetch_history(self, conversation_id: ConversationId) -> list[Message] | None:
        """Fetch and apply the snapshot.

        A failure is recorded on ``handle.history_error`` instead of raised;
        the stream keeps applying. Returns None when nothing was applied.
        """
        handle = self._require_open(conversation_id)
        handle._fetches_in_flight += 1
        try:
            messages = await self._api.fetch_history(conversation_id)
        except RequestError as exc:
            logger.warning("History fetch for %s failed: %s", conversation_id, exc.detail)
            if handle.active:
                handle.history_error = exc
                handle._notify()
            return None
        finally:
            handle._fetches_in_flight -= 1
            arrived = list(handle._since_fetch.values())
            deleted = list(handle._deleted_since_fetch)
            if handle._fetches_in_flight == 0:
                handle._since_fetch.clear()
                handle._deleted_since_fetch.clear()

        if not handle.active:
            logger.debug("Discarding history for closed conversation %s", conversation_id)
            return None

        handle.store.apply_snapshot(messages)
        # replay stream events that raced the snapshot
        for received in arrived:
            if received.updated:
                handle.store.apply_update(received.message)
            else:
                handle.store.apply_insert(received.message)
        for message_id in deleted:
            handle.store.apply_delete(message_id)
        handle.history_error = None
        handle.history_loaded = True
        handle._notify()
        return messages

    async def send_message(self, draft: MessageDraft) -> None:
        """Emit a message; it shows up only once echoed back by the stream."""
        handle = self._require_open()
        if draft.media is None and not draft.text.strip():
            raise ValidationError("cannot send an empty message")
        payload = SendMessagePayload(
            conversation_id=handle.conversation_id,
            text=draft.text,
            kind=draft.kind.value,
            media_url=draft.media.url if draft.media else None,
            media_kind=draft.media.kind if draft.media else None,
        )
        await self._transport.emit(ClientEvent.SEND_MESSAGE, payload.dump())

    async def send_attachment(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        text: str = "",
    ) -> None:
        handle = self._require_open()
        media = await self._api.upload_media(data, filename, content_type)
        if not handle.active:
            logger.debug("Upload finished after %s closed; not sending", handle.conversation_id)
            return
        await self.send_message(
            MessageDraft(text=text, kind=MessageKind.from_content_type(content_type), media=media),
        )

    async def set_draft_text(self, text: str) -> None:
        """Report composer contents; emits ``typing`` only on empty/non-empty flips."""
        handle = self._require_open()
        is_typing = handle.typing_signal.update(text)
        if is_typing is None:
            return
        await self._transport.emit(
            ClientEvent.TYPING,
            TypingPayload(conversation_id=handle.conversation_id, is_typing=is_typing).dump(),
        )

    async def react(self, message_id: MessageId, emoji: str) -> Message | None:
        """The returned message replaces the stored one wholesale."""
        handle = self._require_open()
        updated = await self._api.react(message_id, emoji)
        if not handle.active:
            return None
        if not updated.conversation_id:
            updated = dataclasses.replace(updated, conversation_id=handle.conversation_id)
        if handle.store.apply_update(updated):
            handle._notify()
        return updated

    async def delete_message(self, message_id: MessageId) -> None:
        handle = self._require_open()
        await handle.deletion.request_delete(message_id)

    async def close(self) -> None:
        handle = self._handle
        if handle is None or not handle.active:
            return
        was_typing = handle.typing_signal.active
        handle.typing_signal.reset()
        consumer = handle._consumer
        handle._deactivate(ConnectionState.CLOSED)
        self._handle = None
        logger.info("Conversation %s closed", handle.conversation_id)

        if was_typing:
            try:
                await self._transport.emit(
                    ClientEvent.TYPING,
                    TypingPayload(conversation_id=handle.conversation_id, is_typing=False).dump(),
                )
            except TransportError as exc:
                logger.debug("Could not clear typing state on close: %s", exc.detail)
        if not self._transport.shared:
            await self._transport.disconnect()
        if consumer is not None:
            try:
                await consumer
            except asyncio.CancelledError:
                pass

    def _require_open(self, conversation_id: ConversationId | None = None) -> ConversationHandle:
        handle = self._handle
        if handle is None or not handle.active:
            raise ValidationError("no conversation is open")
        if conversation_id is not None and handle.conversation_id != conversation_id:
            raise ValidationError(f"conversation {conversation_id} is not open")
        return handle

    async def _on_reconnect(self, handle: ConversationHandle) -> None:
        if not handle.active:
            return
        logger.info("Rejoining %s after reconnect", handle.conversation_id)
        handle.presence.clear()
        try:
            await self._join(handle)
        except TransportError as exc:
            logger.warning("Rejoin of %s failed: %s", handle.conversation_id, exc.detail)
            return
        if self._config.resync_on_reconnect and handle.active:
            await self.fetch_history(handle.conversation_id)

    async def _consume(self, handle: ConversationHandle) -> None:
        conversation_id_ctx.set(handle.conversation_id)
        while handle.active:
            event, data = await handle._queue.get()
            if not handle.active:
                return
            try:
                parsed = parse_server_event(event, data, handle.conversation_id)
            except DecodeError as exc:
                logger.warning("Dropping %r: %s", event, exc.detail)
                continue
            if parsed is None or not self._accepts(handle, parsed):
                continue
            try:
                changed = self._apply(handle, parsed)
            except Exception:
                logger.exception("Failed to apply %r", event)
                continue
            if changed:
                handle._notify()

    def _accepts(self, handle: ConversationHandle, event: InboundEvent) -> bool:
        if event.conversation_id is None:
            if not self._transport.shared:
                return True
            # bare deletes are attributed by id; typing cannot be
            if isinstance(event, MessageRemoved):
                return event.message_id in handle.store or handle._fetches_in_flight > 0
            return False
        return event.conversation_id == handle.conversation_id

    def _apply(self, handle: ConversationHandle, event: InboundEvent) -> bool:
        if isinstance(event, MessageReceived):
            message = event.message
            if handle._fetches_in_flight:
                earlier = handle._since_fetch.get(message.id)
                if earlier is not None and not earlier.updated:
                    # an insert seen in the window still replays as an insert
                    handle._since_fetch[message.id] = dataclasses.replace(event, updated=False)
                else:
                    handle._since_fetch[message.id] = event
            if event.updated:
                return handle.store.apply_update(message)
            return handle.store.apply_insert(message)
        if isinstance(event, MessageRemoved):
            if handle._fetches_in_flight:
                handle._since_fetch.pop(event.message_id, None)
                handle._deleted_since_fetch.add(event.message_id)
            return handle.store.apply_delete(event.message_id)
        if isinstance(event, TypingChanged):
            return handle.presence.set_typing(event.user_id, event.is_typing)
        return False
