from __future__ import annotations

from enum import StrEnum


class OutboundType(StrEnum):
    """Client → Server envelope tags."""

    AUTH = "auth"
    JOIN = "join_shadow_session"
    LEAVE = "leave_shadow_session"
    MESSAGE = "session_message"
    TYPING = "typing"
    PONG = "pong"


class InboundType(StrEnum):
    """Server → Client envelope tags."""

    MESSAGE = "session_message"
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_LEFT = "participant_left"
    USER_TYPING = "user_typing"
    SESSION_UPDATE = "session_update"
    PING = "ping"
    ERROR = "error"


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class ErrorCode(StrEnum):
    INVALID_PAYLOAD = "invalid_payload"
    INVALID_DATA = "invalid_data"
    UNKNOWN_TYPE = "unknown_type"
    UNAUTHENTICATED = "unauthenticated"
    AUTH_FAILED = "auth_failed"
    NOT_JOINED = "not_joined"
    ALREADY_AUTHENTICATED = "already_authenticated"
