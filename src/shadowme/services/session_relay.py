"""Server side of the session channel: routes envelopes between room members."""
from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel

from shadowme.application.dto.identity import Identity
from shadowme.application.exceptions import (
    AuthenticationError,
    MalformedEnvelopeError,
    NotFoundError,
    ProtocolError,
)
from shadowme.application.ports.clock import Clock, SystemClock, iso_z
from shadowme.application.ports.users import UserDirectory
from shadowme.domain.value_objects.enums import ErrorCode, InboundType, OutboundType
from shadowme.infrastructure.ws.manager import RoomConnectionManager
from shadowme.infrastructure.ws.protocol import (
    AuthPayload,
    Envelope,
    InboundMessagePayload,
    OutboundMessagePayload,
    ParticipantPayload,
    SessionRefPayload,
    TypingPayload,
    UserTypingPayload,
    decode,
    payload_as,
)

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)


class SessionRelay:
    def __init__(
        self,
        manager: RoomConnectionManager,
        users: UserDirectory,
        clock: Clock | None = None,
    ) -> None:
        self.manager = manager
        self._users = users
        self._clock = clock or SystemClock()

    async def handle(self, conn_id: str, raw: str) -> None:
        """Apply one inbound frame.

        Raises ProtocolError for envelopes that are rejected and
        AuthenticationError when ``auth`` names an unknown user.
        """
        try:
            envelope = decode(raw)
        except MalformedEnvelopeError as exc:
            raise ProtocolError(ErrorCode.INVALID_PAYLOAD, str(exc)) from exc

        if envelope.type == OutboundType.AUTH:
            await self._auth(conn_id, envelope)
            return
        if envelope.type == OutboundType.PONG:
            return

        identity = self.manager.identity(conn_id)
        if identity is None:
            raise ProtocolError(ErrorCode.UNAUTHENTICATED, "Send auth first")

        if envelope.type == OutboundType.JOIN:
            await self._join(conn_id, identity, envelope)
        elif envelope.type == OutboundType.LEAVE:
            await self._leave(conn_id, identity, envelope)
        elif envelope.type == OutboundType.MESSAGE:
            await self._message(conn_id, identity, envelope)
        elif envelope.type == OutboundType.TYPING:
            await self._typing(conn_id, identity, envelope)
        else:
            raise ProtocolError(ErrorCode.UNKNOWN_TYPE, envelope.type)

    async def disconnect(self, conn_id: str) -> None:
        identity = self.manager.identity(conn_id)
        vacated = self.manager.disconnect(conn_id)
        if identity is None:
            return
        for session_id in vacated:
            logger.info("User %s dropped out of session %s", identity.user_id, session_id)
            await self.manager.broadcast(
                session_id,
                InboundType.PARTICIPANT_LEFT,
                ParticipantPayload(user_id=identity.user_id),
            )

    async def publish_session_update(self, session_id: str) -> int:
        if not self.manager.participants(session_id):
            raise NotFoundError("No live participants in session")
        return await self.manager.broadcast(session_id, InboundType.SESSION_UPDATE)

    async def _auth(self, conn_id: str, envelope: Envelope) -> None:
        auth = _payload(envelope, AuthPayload)
        current = self.manager.identity(conn_id)
        if current is not None:
            if current.user_id != auth.user_id:
                raise ProtocolError(
                    ErrorCode.ALREADY_AUTHENTICATED, f"Connection belongs to {current.user_id}",
                )
            return
        display_name = await self._users.display_name(auth.user_id)
        if display_name is None:
            raise AuthenticationError(f"User not found: {auth.user_id}")
        self.manager.authenticate(conn_id, Identity(user_id=auth.user_id, display_name=display_name))
        logger.info("WS user authenticated: %s (%s) on %s", display_name, auth.user_id, conn_id)

    async def _join(self, conn_id: str, identity: Identity, envelope: Envelope) -> None:
        ref = _payload(envelope, SessionRefPayload)
        if not ref.session_id:
            raise ProtocolError(ErrorCode.INVALID_DATA, "sessionId is required")
        logger.info("User %s joining session %s", identity.user_id, ref.session_id)
        if self.manager.join(conn_id, ref.session_id):
            await self.manager.broadcast(
                ref.session_id,
                InboundType.PARTICIPANT_JOINED,
                ParticipantPayload(user_id=identity.user_id),
                exclude=conn_id,
            )

    async def _leave(self, conn_id: str, identity: Identity, envelope: Envelope) -> None:
        ref = _payload(envelope, SessionRefPayload)
        logger.info("User %s leaving session %s", identity.user_id, ref.session_id)
        if self.manager.leave(conn_id, ref.session_id):
            await self.manager.broadcast(
                ref.session_id,
                InboundType.PARTICIPANT_LEFT,
                ParticipantPayload(user_id=identity.user_id),
            )

    async def _message(self, conn_id: str, identity: Identity, envelope: Envelope) -> None:
        msg = _payload(envelope, OutboundMessagePayload)
        content = msg.content.strip()
        if not content:
            raise ProtocolError(ErrorCode.INVALID_DATA, "content is required")
        if not self.manager.is_member(conn_id, msg.session_id):
            raise ProtocolError(ErrorCode.NOT_JOINED, msg.session_id)

        # The sender gets the broadcast too; clients render their own lines from it.
        await self.manager.broadcast(
            msg.session_id,
            InboundType.MESSAGE,
            InboundMessagePayload(
                sender_id=identity.user_id,
                sender_name=identity.display_name,
                content=content,
                timestamp=iso_z(self._clock.now()),
            ),
        )

    async def _typing(self, conn_id: str, identity: Identity, envelope: Envelope) -> None:
        typing = _payload(envelope, TypingPayload)
        if not self.manager.is_member(conn_id, typing.session_id):
            raise ProtocolError(ErrorCode.NOT_JOINED, typing.session_id)
        await self.manager.broadcast(
            typing.session_id,
            InboundType.USER_TYPING,
            UserTypingPayload(user_id=identity.user_id, is_typing=typing.is_typing),
            exclude=conn_id,
        )


def _payload(envelope: Envelope, model: type[P]) -> P:
    try:
        return payload_as(envelope, model)
    except MalformedEnvelopeError as exc:
        raise ProtocolError(ErrorCode.INVALID_DATA, str(exc)) from exc
