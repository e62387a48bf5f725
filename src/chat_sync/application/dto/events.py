"""Decoded server → client stream events."""
from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId


@dataclass(frozen=True, slots=True)
class MessageReceived:
    message: Message
    conversation_id: ConversationId | None
    updated: bool = False


@dataclass(frozen=True, slots=True)
class MessageRemoved:
    message_id: MessageId
    conversation_id: ConversationId | None = None


@dataclass(frozen=True, slots=True)
class TypingChanged:
    user_id: UserId
    is_typing: bool
    conversation_id: ConversationId | None = None


InboundEvent = MessageReceived | MessageRemoved | TypingChanged
