from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_URL: str = "http://localhost:5000/api"
    WS_URL: str = "ws://localhost:5000/ws"
    TOKEN: str = ""
    REQUEST_TIMEOUT: float = 10.0

    TRANSPORT: Literal["ws", "redis"] = "ws"

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "chat.fanout"
    REDIS_OUTBOUND_CHANNEL: str = "chat.inbound"

    WS_HEARTBEAT_SECONDS: float = 30.0
    RECONNECT_BASE_DELAY: float = 0.5
    RECONNECT_MAX_DELAY: float = 30.0

    RESYNC_ON_RECONNECT: bool = True
    TYPING_TTL_SECONDS: float | None = None

    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="CHAT_",
        extra="ignore",
    )


settings = Settings()
