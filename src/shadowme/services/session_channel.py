"""Session channel client: one realtime connection per mounted session view.

The client owns a single transport and two tasks. The reader task is the only
consumer of inbound frames, so envelopes are applied strictly in delivery
order. The writer task drains a FIFO outbox, which keeps ``auth`` ahead of
``join_shadow_session`` and makes every send fire-and-forget for the caller.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from pydantic import BaseModel

from shadowme.application.exceptions import (
    MalformedEnvelopeError,
    TransportClosed,
    TransportError,
    ValidationError,
)
from shadowme.application.ports.collaborators import Notifier, QueryInvalidator
from shadowme.application.ports.transport import ChannelTransport, TransportFactory
from shadowme.domain.entities.chat_message import ChatMessage
from shadowme.domain.value_objects.enums import ConnectionState, InboundType, OutboundType
from shadowme.infrastructure.ws.protocol import (
    AuthPayload,
    Envelope,
    ErrorPayload,
    InboundMessagePayload,
    OutboundMessagePayload,
    ParticipantPayload,
    SessionRefPayload,
    TypingPayload,
    UserTypingPayload,
    decode,
    encode,
    payload_as,
)

logger = logging.getLogger(__name__)

SESSIONS_QUERY_ROOT = "/api/shadow-sessions"

Listener = Callable[[], None]


class SessionChannelClient:
    """Connection manager for one shadow-session view.

    States move DISCONNECTED → CONNECTING → CONNECTED → CLOSING → DISCONNECTED;
    a transport failure drops straight to DISCONNECTED from any state.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        invalidator: QueryInvalidator,
        notifier: Notifier,
    ) -> None:
        self._transport_factory = transport_factory
        self._invalidator = invalidator
        self._notifier = notifier

        self._state = ConnectionState.DISCONNECTED
        self._transport: ChannelTransport | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._reader: asyncio.Task[None] | None = None
        self._writer: asyncio.Task[None] | None = None

        self._session_id: str | None = None
        self._user_id: str | None = None
        self._messages: list[ChatMessage] = []
        self._participants: dict[str, None] = {}
        self._typing: dict[str, bool] = {}
        self._listeners: list[Listener] = []

    # -- reactive handle ------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def participants(self) -> tuple[str, ...]:
        """Roster in join order."""
        return tuple(self._participants)

    @property
    def typing(self) -> dict[str, bool]:
        return dict(self._typing)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change callback; returns the matching unsubscribe."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # -- lifecycle ------------------------------------------------------

    async def open(self, session_id: str, user_id: str) -> None:
        if not session_id or not user_id:
            raise ValidationError("session_id and user_id are required")

        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            if session_id == self._session_id and user_id == self._user_id:
                return
            await self.close()

        self._session_id = session_id
        self._user_id = user_id
        self._messages = []
        self._participants = {}
        self._typing = {}

        transport = self._transport_factory()
        self._transport = transport
        self._set_state(ConnectionState.CONNECTING)

        try:
            await transport.connect()
        except TransportError as exc:
            await self._on_transport_lost(transport, exc)
            return

        if self._transport is not transport or self._state is not ConnectionState.CONNECTING:
            # close() ran while the transport was still opening
            await _close_quietly(transport)
            return

        self._outbox = asyncio.Queue()
        self._enqueue(OutboundType.AUTH, AuthPayload(user_id=user_id))
        self._enqueue(OutboundType.JOIN, SessionRefPayload(session_id=session_id))
        self._writer = asyncio.create_task(
            self._write_loop(transport, self._outbox),
            name=f"session-channel-writer-{session_id}",
        )
        self._reader = asyncio.create_task(
            self._read_loop(transport),
            name=f"session-channel-reader-{session_id}",
        )
        logger.info("Session channel connected: session=%s user=%s", session_id, user_id)
        self._set_state(ConnectionState.CONNECTED)

    async def close(self) -> None:
        """Leave the room and release the transport. Safe in every state."""
        transport = self._transport
        if transport is None and self._state is ConnectionState.DISCONNECTED:
            return

        leave = (
            self._state is ConnectionState.CONNECTED
            and transport is not None
            and transport.is_open
        )
        self._set_state(ConnectionState.CLOSING)

        if leave and self._session_id is not None:
            self._enqueue(OutboundType.LEAVE, SessionRefPayload(session_id=self._session_id))
            await self.flush()

        self._transport = None
        await self._cancel_tasks()
        self._outbox = None
        if transport is not None:
            await _close_quietly(transport)

        logger.info("Session channel closed: session=%s", self._session_id)
        self._set_state(ConnectionState.DISCONNECTED)

    @asynccontextmanager
    async def session(self, session_id: str, user_id: str) -> AsyncIterator[SessionChannelClient]:
        """Hold the channel open for the body; closes on every exit path."""
        await self.open(session_id, user_id)
        try:
            yield self
        finally:
            await self.close()

    async def flush(self) -> None:
        """Wait until every queued outbound envelope was handed to the transport."""
        outbox = self._outbox
        if outbox is not None and self._writer is not None and not self._writer.done():
            await outbox.join()

    # -- sending --------------------------------------------------------

    def send_message(self, content: str) -> bool:
        if not self.connected or self._session_id is None:
            return False
        text = content.strip()
        if not text:
            return False
        self._enqueue(
            OutboundType.MESSAGE,
            OutboundMessagePayload(session_id=self._session_id, content=text),
        )
        return True

    def send_typing_indicator(self, is_typing: bool) -> None:
        if not self.connected or self._session_id is None:
            return
        self._enqueue(
            OutboundType.TYPING,
            TypingPayload(session_id=self._session_id, is_typing=is_typing),
        )

    def _enqueue(self, type_: OutboundType, payload: BaseModel | None = None) -> None:
        if self._outbox is None:
            return
        self._outbox.put_nowait(encode(type_, payload))

    # -- receiving ------------------------------------------------------

    def _handle_frame(self, raw: str) -> None:
        try:
            envelope = decode(raw)
            handled = self._dispatch(envelope)
        except MalformedEnvelopeError as exc:
            logger.warning("Error parsing session channel frame: %s", exc)
            return
        if handled:
            self._emit()

    def _dispatch(self, envelope: Envelope) -> bool:
        """Apply one envelope to local state; False when nothing changed."""
        if envelope.type == InboundType.MESSAGE:
            msg = payload_as(envelope, InboundMessagePayload)
            self._messages.append(
                ChatMessage(
                    sender_id=msg.sender_id,
                    sender_name=msg.sender_name,
                    content=msg.content,
                    timestamp=msg.timestamp,
                )
            )

        elif envelope.type == InboundType.PARTICIPANT_JOINED:
            joined = payload_as(envelope, ParticipantPayload)
            self._participants[joined.user_id] = None
            self._invalidate_participants()

        elif envelope.type == InboundType.PARTICIPANT_LEFT:
            left = payload_as(envelope, ParticipantPayload)
            self._participants.pop(left.user_id, None)
            self._invalidate_participants()

        elif envelope.type == InboundType.USER_TYPING:
            typing = payload_as(envelope, UserTypingPayload)
            self._typing[typing.user_id] = typing.is_typing

        elif envelope.type == InboundType.SESSION_UPDATE:
            self._invalidator.invalidate((SESSIONS_QUERY_ROOT, self._session_id or ""))
            return False

        elif envelope.type == InboundType.PING:
            self._enqueue(OutboundType.PONG)
            return False

        elif envelope.type == InboundType.ERROR:
            err = payload_as(envelope, ErrorPayload)
            logger.warning("Session channel error from server: code=%s detail=%s", err.code, err.detail)
            return False

        else:
            logger.debug("Ignoring unknown envelope type: %s", envelope.type)
            return False

        return True

    def _invalidate_participants(self) -> None:
        self._invalidator.invalidate((SESSIONS_QUERY_ROOT, self._session_id or "", "participants"))

    # -- tasks ----------------------------------------------------------

    async def _read_loop(self, transport: ChannelTransport) -> None:
        while True:
            try:
                raw = await transport.receive_text()
            except TransportError as exc:
                await self._on_transport_lost(transport, exc)
                return
            self._handle_frame(raw)

    async def _write_loop(self, transport: ChannelTransport, outbox: asyncio.Queue[str]) -> None:
        while True:
            raw = await outbox.get()
            try:
                await transport.send_text(raw)
            except TransportError as exc:
                _discard_pending(outbox)
                await self._on_transport_lost(transport, exc)
                return
            finally:
                outbox.task_done()

    async def _on_transport_lost(self, transport: ChannelTransport, exc: TransportError) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        current = asyncio.current_task()
        for task in (self._reader, self._writer):
            if task is not None and task is not current:
                task.cancel()
        self._reader = self._writer = None
        if self._outbox is not None:
            _discard_pending(self._outbox)

        if isinstance(exc, TransportClosed):
            logger.info("Session channel closed by peer: session=%s", self._session_id)
        else:
            logger.warning("Session channel transport error: session=%s error=%s", self._session_id, exc)
            self._notifier.notify(
                "Connection Error",
                "Failed to connect to the shadow session.",
                variant="destructive",
            )
        self._set_state(ConnectionState.DISCONNECTED)
        await _close_quietly(transport)

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in (self._reader, self._writer) if t is not None and t is not current]
        self._reader = self._writer = None
        for task in tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # -- state ----------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("Session channel state: %s -> %s", self._state, state)
        self._state = state
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Session channel listener failed")


def _discard_pending(outbox: asyncio.Queue[str]) -> None:
    while True:
        try:
            outbox.get_nowait()
        except asyncio.QueueEmpty:
            return
        outbox.task_done()


async def _close_quietly(transport: ChannelTransport) -> None:
    try:
        await transport.close()
    except TransportError:
        logger.debug("Transport close failed", exc_info=True)
