"""Wire models for REST responses and stream message payloads.

The backend speaks camelCase with a few legacy document-store names
(``_id``, ``chatId``, ``profilePhoto``); both spellings are accepted.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from chat_sync.domain.entities.conversation import ConversationSummary
from chat_sync.domain.entities.message import Media, Message, Reaction, Sender
from chat_sync.domain.entities.user import User
from chat_sync.domain.value_objects.enums import MessageKind
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId


def _ref_id(value: Any) -> Any:
    """Collapse a populated ``{"_id": ...}`` reference to its id."""
    if isinstance(value, dict):
        return value.get("_id", value.get("id"))
    return value


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SenderSchema(_WireModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    display_name: str = Field("", validation_alias=AliasChoices("name", "displayName", "username"))
    avatar_ref: str | None = Field(None, validation_alias=AliasChoices("profilePhoto", "avatarRef", "avatar"))
    online: bool = Field(False, validation_alias=AliasChoices("onlineStatus", "online"))

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_id(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"_id": data}
        return data

    def to_entity(self) -> Sender:
        return Sender(
            id=UserId(self.id),
            display_name=self.display_name,
            avatar_ref=self.avatar_ref,
            online=self.online,
        )


class ReactionSchema(_WireModel):
    emoji: str
    user_id: str = Field(validation_alias=AliasChoices("user", "userId"))

    @field_validator("user_id", mode="before")
    @classmethod
    def _collapse_user(cls, value: Any) -> Any:
        return _ref_id(value)


class MessageSchema(_WireModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    conversation_id: str | None = Field(None, validation_alias=AliasChoices("chatId", "conversationId", "chat"))
    sender: SenderSchema
    text: str | None = None
    kind: MessageKind = Field(MessageKind.TEXT, validation_alias=AliasChoices("type", "kind"))
    media_url: str | None = Field(None, validation_alias=AliasChoices("mediaUrl", "media_url"))
    media_kind: str | None = Field(None, validation_alias=AliasChoices("mediaType", "mediaKind"))
    reactions: list[ReactionSchema] = Field(default_factory=list)
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "createdAt"))
    deleted: bool = False

    @field_validator("conversation_id", mode="before")
    @classmethod
    def _collapse_chat(cls, value: Any) -> Any:
        return _ref_id(value)

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return _aware(value)

    def to_entity(self, fallback_conversation_id: str | None = None) -> Message:
        media = None
        if self.media_url:
            media = Media(url=self.media_url, kind=self.media_kind or self.kind.value)
        return Message(
            id=MessageId(self.id),
            conversation_id=ConversationId(self.conversation_id or fallback_conversation_id or ""),
            sender=self.sender.to_entity(),
            timestamp=self.timestamp,
            text=self.text,
            media=media,
            kind=self.kind,
            reactions=tuple(Reaction(emoji=r.emoji, user_id=UserId(r.user_id)) for r in self.reactions),
            deleted=self.deleted,
        )


class UserSchema(_WireModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    display_name: str = Field("", validation_alias=AliasChoices("name", "displayName", "username"))
    avatar_ref: str | None = Field(None, validation_alias=AliasChoices("profilePhoto", "avatarRef", "avatar"))
    online: bool = Field(False, validation_alias=AliasChoices("onlineStatus", "online"))
    bio: str | None = None

    def to_entity(self) -> User:
        return User(
            id=UserId(self.id),
            display_name=self.display_name,
            avatar_ref=self.avatar_ref,
            online=self.online,
            bio=self.bio,
        )


class ConversationSchema(_WireModel):
    id: str = Field(validation_alias=AliasChoices("conversationId", "_id", "id"))
    participants: list[str] = Field(default_factory=list)
    last_message: MessageSchema | None = Field(None, validation_alias=AliasChoices("lastMessage", "last_message"))
    last_activity: datetime | None = Field(
        None, validation_alias=AliasChoices("lastActivity", "updatedAt", "last_activity"),
    )

    @field_validator("participants", mode="before")
    @classmethod
    def _collapse_participants(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_ref_id(v) for v in value]
        return value

    @field_validator("last_activity")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return _aware(value) if value is not None else None

    def to_entity(self) -> ConversationSummary:
        return ConversationSummary(
            id=ConversationId(self.id),
            participants=frozenset(UserId(p) for p in self.participants),
            last_message=self.last_message.to_entity(self.id) if self.last_message else None,
            last_activity=self.last_activity,
        )


class UploadResponse(_WireModel):
    url: str
    kind: str = Field(validation_alias=AliasChoices("type", "kind", "mediaType"))

    def to_entity(self) -> Media:
        return Media(url=self.url, kind=self.kind)


class DirectStartResponse(_WireModel):
    conversation_id: str = Field(validation_alias=AliasChoices("conversationId", "_id", "id"))
