"""Ephemeral typing state."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.domain.value_objects.ids import UserId

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Set of users currently typing in one conversation.

    Without a TTL an entry lives until an explicit ``is_typing=False``.
    """

    def __init__(
        self,
        *,
        self_id: UserId | None = None,
        ttl_seconds: float | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._self_id = self_id
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock or SystemClock()
        self._typing: dict[UserId, datetime] = {}

    def set_typing(self, user_id: UserId, is_typing: bool) -> bool:
        """Return True when the visible typing set changed."""
        if user_id == self._self_id:
            return False
        if is_typing:
            added = user_id not in self._typing
            self._typing[user_id] = self._clock.now()
            return added
        return self._typing.pop(user_id, None) is not None

    def typing_users(self) -> frozenset[UserId]:
        self._prune()
        return frozenset(self._typing)

    def is_typing(self, user_id: UserId) -> bool:
        return user_id in self.typing_users()

    def clear(self) -> None:
        self._typing.clear()

    def _prune(self) -> None:
        if self._ttl is None:
            return
        cutoff = self._clock.now() - self._ttl
        for user_id, seen in list(self._typing.items()):
            if seen < cutoff:
                logger.debug("Typing indicator for %s expired", user_id)
                del self._typing[user_id]


class TypingSignal:
    """Edge detector for the local user's typing state."""

    def __init__(self) -> None:
        self._has_text = False

    @property
    def active(self) -> bool:
        return self._has_text

    def update(self, text: str) -> bool | None:
        """Return the new state on a transition, ``None`` otherwise."""
        has_text = len(text) > 0
        if has_text == self._has_text:
            return None
        self._has_text = has_text
        return has_text

    def reset(self) -> None:
        self._has_text = False
