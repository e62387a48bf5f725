"""Conversation-scoped logging context."""
from __future__ import annotations

import logging
from contextvars import ContextVar

conversation_id_ctx: ContextVar[str] = ContextVar("conversation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(conversation_id)s]: %(message)s"


class ConversationIdFilter(logging.Filter):
    """Stamp each record with the conversation currently being handled."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = conversation_id_ctx.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(ConversationIdFilter())
