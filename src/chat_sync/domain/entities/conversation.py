from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ConversationId, UserId


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """Read-only view of a conversation owned by the conversation list."""

    id: ConversationId
    participants: frozenset[UserId] = field(default_factory=frozenset)
    last_message: Message | None = None
    last_activity: datetime | None = None
