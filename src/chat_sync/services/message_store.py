"""In-memory, id-indexed message collection for one conversation."""
from __future__ import annotations

import logging
from typing import Iterable, Iterator

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import MessageId

logger = logging.getLogger(__name__)


def chronological_key(message: Message) -> tuple:
    return (message.timestamp, message.id)


class MessageStore:
    """Deduplicated messages for a single conversation.

    Dict insertion order is the internal order; ``ordered()`` gives the
    display order (timestamp, then id). Deleted ids are tombstoned and can
    never come back.
    """

    def __init__(self) -> None:
        self._messages: dict[MessageId, Message] = {}
        self._tombstones: set[MessageId] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages.values()))

    def get(self, message_id: MessageId) -> Message | None:
        return self._messages.get(message_id)

    def ids(self) -> list[MessageId]:
        return list(self._messages)

    def is_deleted(self, message_id: MessageId) -> bool:
        return message_id in self._tombstones

    def ordered(self) -> list[Message]:
        return sorted(self._messages.values(), key=chronological_key)

    def apply_snapshot(self, messages: Iterable[Message]) -> None:
        fresh: dict[MessageId, Message] = {}
        for message in messages:
            if message.id in self._tombstones:
                continue
            if message.deleted:
                self._tombstones.add(message.id)
                continue
            fresh[message.id] = message
        self._messages = fresh
        logger.debug("Snapshot applied: %d message(s)", len(fresh))

    def apply_insert(self, message: Message) -> bool:
        if message.id in self._tombstones:
            logger.debug("Ignoring insert for deleted message %s", message.id)
            return False
        if message.deleted:
            self._tombstones.add(message.id)
            return self._messages.pop(message.id, None) is not None
        if message.id in self._messages:
            return self.apply_update(message)
        self._messages[message.id] = message
        return True

    def apply_update(self, message: Message) -> bool:
        current = self._messages.get(message.id)
        if current is None:
            logger.debug("Ignoring update for unknown message %s", message.id)
            return False
        if message.deleted:
            return self.apply_delete(message.id)
        if current == message:
            return False
        self._messages[message.id] = message
        return True

    def apply_delete(self, message_id: MessageId) -> bool:
        """Remove and tombstone a held message.

        Unknown ids are left untouched; a later insert of that id still lands.
        """
        if self._messages.pop(message_id, None) is None:
            logger.debug("Ignoring delete for unknown message %s", message_id)
            return False
        self._tombstones.add(message_id)
        return True
