from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from chat_sync.application.exceptions import DecodeError


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"invalid JSON frame: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        raise DecodeError("frame is missing an event name")
    payload = data.get("data", {})
    if not isinstance(payload, dict):
        raise DecodeError(f"payload of {data['event']!r} is not an object")
    return data["event"], payload
