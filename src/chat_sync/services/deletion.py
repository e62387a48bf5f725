"""Two-phase message removal: REST confirmation, then stream broadcast."""
from __future__ import annotations

import asyncio
import logging

from chat_sync.application.exceptions import RequestError
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.transport import StreamTransport
from chat_sync.domain.value_objects.enums import ClientEvent
from chat_sync.domain.value_objects.ids import ConversationId, MessageId
from chat_sync.infrastructure.ws.protocol import DeleteMessagePayload

logger = logging.getLogger(__name__)


class DeletionCoordinator:
    """Deletes messages without ever touching a MessageStore directly.

    Removal reaches every view, the requester's included, through the
    ``messageDeleted`` stream event. Concurrent requests for the same id
    share one in-flight attempt.
    """

    def __init__(
        self,
        conversation_id: ConversationId,
        api: ChatApi,
        transport: StreamTransport,
    ) -> None:
        self._conversation_id = conversation_id
        self._api = api
        self._transport = transport
        self._in_flight: dict[MessageId, asyncio.Future[None]] = {}

    async def request_delete(self, message_id: MessageId) -> None:
        """Raises RequestError if the backend refuses; TransportError if the
        broadcast cannot be emitted after a confirmed delete."""
        pending = self._in_flight.get(message_id)
        if pending is not None:
            await asyncio.shield(pending)
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._in_flight[message_id] = future
        try:
            await self._delete(message_id)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # consumed by the caller below; silence "never retrieved"
            future.exception()
            raise
        else:
            future.set_result(None)
        finally:
            self._in_flight.pop(message_id, None)

    async def _delete(self, message_id: MessageId) -> None:
        try:
            await self._api.delete_message(message_id)
        except RequestError:
            logger.warning("Delete of %s rejected by backend; store left untouched", message_id)
            raise

        payload = DeleteMessagePayload(conversation_id=self._conversation_id, message_id=message_id)
        await self._transport.emit(ClientEvent.DELETE_MESSAGE, payload.dump())
        logger.info("Delete of %s confirmed and broadcast", message_id)
