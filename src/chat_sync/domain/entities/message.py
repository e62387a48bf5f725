from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from chat_sync.domain.value_objects.enums import MessageKind
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId


@dataclass(frozen=True, slots=True)
class Sender:
    id: UserId
    display_name: str = ""
    avatar_ref: str | None = None
    online: bool = False


@dataclass(frozen=True, slots=True)
class Media:
    url: str
    kind: str


@dataclass(frozen=True, slots=True)
class Reaction:
    emoji: str
    user_id: UserId


@dataclass(frozen=True, slots=True)
class Message:
    id: MessageId
    conversation_id: ConversationId
    sender: Sender
    timestamp: datetime
    text: str | None = None
    media: Media | None = None
    kind: MessageKind = MessageKind.TEXT
    reactions: tuple[Reaction, ...] = field(default_factory=tuple)
    deleted: bool = False
