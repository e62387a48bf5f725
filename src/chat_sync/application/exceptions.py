from __future__ import annotations


class ChatSyncError(Exception):
    """Base error for the sync engine."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class TransportError(ChatSyncError):
    """Stream connect or emit failed."""


class RequestError(ChatSyncError):
    """REST call failed or returned a non-success status."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class DecodeError(ChatSyncError):
    """Inbound stream payload could not be decoded."""


class ValidationError(ChatSyncError):
    pass
