"""WebSocket envelope models for the shadow-session channel."""
from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from shadowme.application.exceptions import MalformedEnvelopeError


class Envelope(BaseModel):
    """``{type, payload?}`` in both directions."""

    type: str
    payload: dict[str, Any] | None = None


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Client → Server


class AuthPayload(_Payload):
    user_id: str


class SessionRefPayload(_Payload):
    """join_shadow_session | leave_shadow_session"""

    session_id: str


class OutboundMessagePayload(_Payload):
    session_id: str
    content: str


class TypingPayload(_Payload):
    session_id: str
    is_typing: bool


# Server → Client


class InboundMessagePayload(_Payload):
    sender_id: str
    sender_name: str
    content: str
    timestamp: str


class ParticipantPayload(_Payload):
    """participant_joined | participant_left"""

    user_id: str


class UserTypingPayload(_Payload):
    user_id: str
    is_typing: bool


class ErrorPayload(_Payload):
    code: str
    detail: str | None = None


P = TypeVar("P", bound=BaseModel)


def encode(type_: str, payload: BaseModel | None = None) -> str:
    """Serialize an envelope; a missing payload is omitted from the frame."""
    body = payload.model_dump(by_alias=True, exclude_none=True) if payload is not None else None
    return Envelope(type=str(type_), payload=body).model_dump_json(exclude_none=True)


def decode(raw: str | bytes) -> Envelope:
    try:
        return Envelope.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise MalformedEnvelopeError(str(exc)) from exc


def payload_as(envelope: Envelope, model: type[P]) -> P:
    """Validate the envelope payload against a typed model."""
    try:
        return model.model_validate(envelope.payload or {})
    except PydanticValidationError as exc:
        raise MalformedEnvelopeError(str(exc)) from exc
