from __future__ import annotations

import logging

from chat_sync.config import Settings
from chat_sync.infrastructure.log_context import ConversationIdFilter, conversation_id_ctx
from chat_sync.services.conversation_client import ClientConfig
from tests.conftest import ME, FakeChatApi, FakeTransport


def test_settings_read_prefixed_env_file(test_settings):
    assert test_settings.API_URL == "http://testserver/api"
    assert test_settings.TOKEN == "test-token"
    assert test_settings.TYPING_TTL_SECONDS is None


def test_settings_environment_override(monkeypatch):
    monkeypatch.setenv("CHAT_TYPING_TTL_SECONDS", "8")
    monkeypatch.setenv("CHAT_RESYNC_ON_RECONNECT", "false")

    settings = Settings()

    assert settings.TYPING_TTL_SECONDS == 8.0
    assert settings.RESYNC_ON_RECONNECT is False


def test_client_config_from_settings(test_settings):
    config = ClientConfig.from_settings(ME, FakeTransport(), FakeChatApi(), test_settings)

    assert config.current_user_id == ME
    assert config.resync_on_reconnect is True
    assert config.typing_ttl_seconds is None


def test_log_filter_stamps_conversation_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    token = conversation_id_ctx.set("c42")
    try:
        ConversationIdFilter().filter(record)
    finally:
        conversation_id_ctx.reset(token)

    assert record.conversation_id == "c42"
