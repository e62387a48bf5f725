from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class User:
    id: UserId
    display_name: str = ""
    avatar_ref: str | None = None
    online: bool = False
    bio: str | None = None
