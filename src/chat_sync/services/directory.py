from __future__ import annotations

import logging
from datetime import datetime, timezone

from chat_sync.application.exceptions import ValidationError
from chat_sync.application.ports.api import ChatApi
from chat_sync.domain.entities.conversation import ConversationSummary
from chat_sync.domain.entities.user import User
from chat_sync.domain.value_objects.ids import ConversationId, UserId

logger = logging.getLogger(__name__)

DIRECT_PREFIX = "direct-"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _activity_key(conversation: ConversationSummary) -> datetime:
    if conversation.last_activity is not None:
        return conversation.last_activity
    if conversation.last_message is not None:
        return conversation.last_message.timestamp
    return _EPOCH


class Directory:
    """Read-side helpers around conversations and profiles."""

    def __init__(self, api: ChatApi, current_user_id: UserId) -> None:
        self._api = api
        self._current_user_id = current_user_id

    async def list_conversations(self) -> list[ConversationSummary]:
        """Most recently active first."""
        conversations = await self._api.list_conversations()
        return sorted(conversations, key=_activity_key, reverse=True)

    async def start_direct(self, recipient_id: UserId) -> ConversationId:
        if recipient_id == self._current_user_id:
            raise ValidationError("cannot start a direct conversation with yourself")
        conversation_id = await self._api.start_direct(recipient_id)
        logger.info("Direct conversation %s with %s", conversation_id, recipient_id)
        return conversation_id

    async def fetch_user(self, user_id: UserId) -> User:
        return await self._api.fetch_user(user_id)

    def other_participant(self, conversation: ConversationSummary | ConversationId) -> UserId | None:
        """The counterpart of a two-party conversation, if determinable.

        Direct conversation ids have the form ``direct-<userA>-<userB>``.
        """
        if isinstance(conversation, ConversationSummary):
            others = conversation.participants - {self._current_user_id}
            if len(others) == 1:
                return next(iter(others))
            conversation_id = conversation.id
        else:
            conversation_id = conversation

        if not conversation_id.startswith(DIRECT_PREFIX):
            return None
        parts = conversation_id[len(DIRECT_PREFIX):].split("-")
        if len(parts) != 2:
            return None
        first, second = parts
        if first == self._current_user_id:
            return UserId(second)
        if second == self._current_user_id:
            return UserId(first)
        return None
