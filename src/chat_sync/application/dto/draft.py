from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.entities.message import Media
from chat_sync.domain.value_objects.enums import MessageKind


@dataclass(frozen=True, slots=True)
class MessageDraft:
    text: str = ""
    kind: MessageKind = MessageKind.TEXT
    media: Media | None = None
