"""Stream event payload models."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from chat_sync.application.dto.events import InboundEvent, MessageReceived, MessageRemoved, TypingChanged
from chat_sync.application.exceptions import DecodeError
from chat_sync.domain.value_objects.enums import ServerEvent
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId
from chat_sync.infrastructure.http.schemas import MessageSchema

logger = logging.getLogger(__name__)


class _Outbound(BaseModel):
    """Client → Server payload; dumped camelCase, ``None`` fields omitted."""

    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class JoinChatPayload(_Outbound):
    conversation_id: str = Field(serialization_alias="conversationId")


class SendMessagePayload(_Outbound):
    conversation_id: str = Field(serialization_alias="conversationId")
    text: str
    kind: str
    media_url: str | None = Field(None, serialization_alias="mediaUrl")
    media_kind: str | None = Field(None, serialization_alias="mediaKind")


class TypingPayload(_Outbound):
    conversation_id: str = Field(serialization_alias="conversationId")
    is_typing: bool = Field(serialization_alias="isTyping")


class DeleteMessagePayload(_Outbound):
    conversation_id: str = Field(serialization_alias="conversationId")
    message_id: str = Field(serialization_alias="messageId")


class SetOnlinePayload(_Outbound):
    user_id: str = Field(serialization_alias="userId")


class _Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MessageDeletedPayload(_Inbound):
    message_id: str = Field(validation_alias=AliasChoices("messageId", "_id", "id"))
    conversation_id: str | None = Field(None, validation_alias=AliasChoices("conversationId", "chatId"))


class UserTypingPayload(_Inbound):
    user_id: str = Field(validation_alias=AliasChoices("userId", "user"))
    is_typing: bool = Field(validation_alias=AliasChoices("isTyping", "typing"))
    conversation_id: str | None = Field(None, validation_alias=AliasChoices("conversationId", "chatId"))


def parse_server_event(
    event: str,
    data: dict[str, Any],
    fallback_conversation_id: str | None = None,
) -> InboundEvent | None:
    """Decode one inbound frame. Unknown event names yield ``None``.

    Raises DecodeError when a known event carries a malformed payload.
    """
    try:
        if event in (ServerEvent.NEW_MESSAGE, ServerEvent.MESSAGE_UPDATED):
            # some servers wrap the document as {"message": {...}}
            body = data["message"] if isinstance(data.get("message"), dict) else data
            schema = MessageSchema.model_validate(body)
            return MessageReceived(
                message=schema.to_entity(fallback_conversation_id),
                conversation_id=ConversationId(schema.conversation_id) if schema.conversation_id else None,
                updated=event == ServerEvent.MESSAGE_UPDATED,
            )
        if event == ServerEvent.MESSAGE_DELETED:
            deleted = MessageDeletedPayload.model_validate(data)
            return MessageRemoved(
                message_id=MessageId(deleted.message_id),
                conversation_id=ConversationId(deleted.conversation_id) if deleted.conversation_id else None,
            )
        if event == ServerEvent.USER_TYPING:
            typing = UserTypingPayload.model_validate(data)
            return TypingChanged(
                user_id=UserId(typing.user_id),
                is_typing=typing.is_typing,
                conversation_id=ConversationId(typing.conversation_id) if typing.conversation_id else None,
            )
    except PydanticValidationError as exc:
        raise DecodeError(f"malformed {event!r} payload: {exc.error_count()} error(s)") from exc

    logger.debug("Ignoring unknown stream event %r", event)
    return None
