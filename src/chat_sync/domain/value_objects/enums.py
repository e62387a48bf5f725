from __future__ import annotations

from enum import StrEnum


class MessageKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DIRECT = "direct"

    @classmethod
    def from_content_type(cls, content_type: str) -> MessageKind:
        if content_type.startswith("image"):
            return cls.IMAGE
        if content_type.startswith("video"):
            return cls.VIDEO
        return cls.AUDIO


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


class ClientEvent(StrEnum):
    """Client → Server stream events."""

    JOIN_CHAT = "joinChat"
    SEND_MESSAGE = "sendMessage"
    TYPING = "typing"
    DELETE_MESSAGE = "deleteMessage"
    SET_ONLINE = "setOnline"


class ServerEvent(StrEnum):
    """Server → Client stream events."""

    NEW_MESSAGE = "newMessage"
    MESSAGE_UPDATED = "messageUpdated"
    MESSAGE_DELETED = "messageDeleted"
    USER_TYPING = "userTyping"
