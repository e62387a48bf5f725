"""Turn a message sequence into a day-bucketed display sequence."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from chat_sync.domain.entities.message import Message
from chat_sync.services.message_store import chronological_key

TODAY = "Today"
YESTERDAY = "Yesterday"


@dataclass(frozen=True, slots=True)
class DateMarker:
    day: date
    label: str


@dataclass(frozen=True, slots=True)
class MessageItem:
    message: Message


DisplayItem = DateMarker | MessageItem


def format_date_label(day: date, today: date) -> str:
    if day == today:
        return TODAY
    if day == today - timedelta(days=1):
        return YESTERDAY
    return day.strftime("%m/%d/%Y")


def group(messages: Iterable[Message], now: datetime | None = None) -> list[DisplayItem]:
    """Interleave one ``DateMarker`` before each calendar day's first message.

    Days are computed in the timezone of ``now`` (local wall clock when
    omitted), evaluated on every call. Deleted messages are skipped.
    """
    if now is None:
        now = datetime.now().astimezone()
    tz = now.tzinfo
    today = now.date()

    items: list[DisplayItem] = []
    last_day: date | None = None
    for message in sorted((m for m in messages if not m.deleted), key=chronological_key):
        day = message.timestamp.astimezone(tz).date()
        if day != last_day:
            items.append(DateMarker(day=day, label=format_date_label(day, today)))
            last_day = day
        items.append(MessageItem(message=message))
    return items
