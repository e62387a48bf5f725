"""Entrypoint: python -m chat_sync <conversation_id> --user <user_id>

Tails one conversation, printing the grouped history on every change.
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from chat_sync.application.exceptions import ChatSyncError
from chat_sync.application.ports.transport import StreamTransport
from chat_sync.config import Settings, settings
from chat_sync.domain.value_objects.ids import ConversationId, UserId
from chat_sync.infrastructure.bus.redis_pubsub import RedisPubSubTransport
from chat_sync.infrastructure.http.api_client import HttpChatApi
from chat_sync.infrastructure.log_context import configure_logging
from chat_sync.infrastructure.ws.transport import WebSocketTransport
from chat_sync.services.conversation_client import ClientConfig, ConversationClient, ConversationHandle
from chat_sync.services.date_grouper import DateMarker

logger = logging.getLogger(__name__)


def build_transport(settings: Settings) -> StreamTransport:
    if settings.TRANSPORT == "redis":
        return RedisPubSubTransport.from_settings(settings)
    return WebSocketTransport.from_settings(settings)


def render(handle: ConversationHandle) -> None:
    print("\033[2J\033[H", end="")
    for item in handle.items():
        if isinstance(item, DateMarker):
            print(f"--- {item.label} ---")
            continue
        msg = item.message
        body = msg.text or (f"[{msg.media.kind}] {msg.media.url}" if msg.media else "")
        stamp = msg.timestamp.astimezone().strftime("%H:%M")
        print(f"{stamp} {msg.sender.display_name or msg.sender.id}: {body}")
    typing = sorted(handle.typing_users())
    if typing:
        print(f"{', '.join(typing)} typing...")
    if handle.history_error is not None:
        print(f"(history unavailable: {handle.history_error.detail})")


async def run(conversation_id: ConversationId, user_id: UserId) -> None:
    transport = build_transport(settings)
    async with HttpChatApi.from_settings(settings) as api:
        client = ConversationClient(ClientConfig.from_settings(user_id, transport, api, settings))
        handle = await client.open(conversation_id)
        handle.add_listener(render)
        render(handle)
        try:
            await asyncio.Event().wait()
        finally:
            await client.close()
            if transport.shared:
                await transport.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(prog="chat_sync", description=__doc__)
    parser.add_argument("conversation_id")
    parser.add_argument("--user", required=True, help="id of the signed-in user")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(run(ConversationId(args.conversation_id), UserId(args.user)))
    except KeyboardInterrupt:
        pass
    except ChatSyncError as exc:
        logger.error("%s", exc.detail)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
