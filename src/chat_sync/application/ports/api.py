from __future__ import annotations

from typing import Protocol

from chat_sync.domain.entities.conversation import ConversationSummary
from chat_sync.domain.entities.message import Media, Message
from chat_sync.domain.entities.user import User
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId


class ChatApi(Protocol):
    """Request/response half of the backend."""

    async def fetch_history(self, conversation_id: ConversationId) -> list[Message]: ...

    async def delete_message(self, message_id: MessageId) -> None: ...

    async def list_conversations(self) -> list[ConversationSummary]: ...

    async def start_direct(self, recipient_id: UserId) -> ConversationId: ...

    async def react(self, message_id: MessageId, emoji: str) -> Message: ...

    async def upload_media(self, data: bytes, filename: str, content_type: str) -> Media: ...

    async def fetch_user(self, user_id: UserId) -> User: ...
