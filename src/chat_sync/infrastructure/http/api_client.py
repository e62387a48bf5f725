"""REST half of the backend over httpx."""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chat_sync.application.exceptions import RequestError
from chat_sync.config import Settings, settings as default_settings
from chat_sync.domain.entities.conversation import ConversationSummary
from chat_sync.domain.entities.message import Media, Message
from chat_sync.domain.entities.user import User
from chat_sync.domain.value_objects.ids import ConversationId, MessageId, UserId
from chat_sync.infrastructure.http.schemas import (
    ConversationSchema,
    DirectStartResponse,
    MessageSchema,
    UploadResponse,
    UserSchema,
)

logger = logging.getLogger(__name__)

_messages_adapter = TypeAdapter(list[MessageSchema])
_conversations_adapter = TypeAdapter(list[ConversationSchema])


def _unwrap_list(body: Any, key: str) -> Any:
    if isinstance(body, dict) and key in body:
        return body[key]
    return body


class HttpChatApi:
    """Implements application.ports.api.ChatApi."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> HttpChatApi:
        return cls(settings.API_URL, settings.TOKEN, timeout=settings.REQUEST_TIMEOUT)

    async def __aenter__(self) -> HttpChatApi:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise RequestError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.warning("%s %s -> %d %s", method, url, response.status_code, detail)
            raise RequestError(detail, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RequestError(f"{method} {url} returned invalid JSON", status_code=response.status_code) from exc

    async def fetch_history(self, conversation_id: ConversationId) -> list[Message]:
        body = await self._request("GET", f"/chat/{conversation_id}")
        try:
            items = _messages_adapter.validate_python(_unwrap_list(body, "messages"))
        except PydanticValidationError as exc:
            raise RequestError(f"malformed history for {conversation_id}") from exc
        return [item.to_entity(conversation_id) for item in items]

    async def delete_message(self, message_id: MessageId) -> None:
        await self._request("DELETE", f"/chat/message/{message_id}")

    async def list_conversations(self) -> list[ConversationSummary]:
        body = await self._request("GET", "/chat/user/conversations")
        try:
            items = _conversations_adapter.validate_python(_unwrap_list(body, "conversations"))
        except PydanticValidationError as exc:
            raise RequestError("malformed conversation list") from exc
        return [item.to_entity() for item in items]

    async def start_direct(self, recipient_id: UserId) -> ConversationId:
        body = await self._request("POST", "/chat/direct/start", json={"recipientId": recipient_id})
        try:
            resp = DirectStartResponse.model_validate(body)
        except PydanticValidationError as exc:
            raise RequestError("malformed direct-start response") from exc
        return ConversationId(resp.conversation_id)

    async def react(self, message_id: MessageId, emoji: str) -> Message:
        body = await self._request("POST", f"/message/{message_id}/react", json={"emoji": emoji})
        try:
            return MessageSchema.model_validate(body).to_entity()
        except PydanticValidationError as exc:
            raise RequestError(f"malformed reaction response for {message_id}") from exc

    async def upload_media(self, data: bytes, filename: str, content_type: str) -> Media:
        body = await self._request(
            "POST", "/media/upload", files={"file": (filename, data, content_type)},
        )
        try:
            return UploadResponse.model_validate(body).to_entity()
        except PydanticValidationError as exc:
            raise RequestError("malformed upload response") from exc

    async def fetch_user(self, user_id: UserId) -> User:
        body = await self._request("GET", f"/user/{user_id}")
        try:
            return UserSchema.model_validate(body).to_entity()
        except PydanticValidationError as exc:
            raise RequestError(f"malformed profile for {user_id}") from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            if isinstance(body.get(key), str):
                return body[key]
    return response.reason_phrase
