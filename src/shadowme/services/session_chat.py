"""Headless binding of the shadow-session chat panel to its channel client."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Callable

from shadowme.domain.entities.chat_message import ChatMessage
from shadowme.services.session_channel import SessionChannelClient
from shadowme.services.typing_debounce import TypingDebouncer

logger = logging.getLogger(__name__)

ParticipantsLookup = Callable[[str], str | None]

INACTIVE_TEXT = "Session not active yet"
CONNECTING_TEXT = "Connecting to session..."
EMPTY_STATE = ("No messages yet", "Be the first to say something!")


@dataclass(frozen=True, slots=True)
class ChatRow:
    sender_id: str
    sender_name: str
    content: str
    time_label: str
    is_current_user: bool


def format_time(timestamp: str) -> str:
    """``2024-01-01T15:04:00Z`` → ``3:04 PM``; unparseable input is returned as is."""
    try:
        ts = datetime.fromisoformat(timestamp)
    except ValueError:
        return timestamp
    hour = ts.hour % 12 or 12
    return f"{hour}:{ts.minute:02d} {'AM' if ts.hour < 12 else 'PM'}"


class ShadowSessionChat:
    """Owns the channel client and the typing debouncer for one mounted view."""

    def __init__(
        self,
        client: SessionChannelClient,
        session_id: str,
        current_user_id: str,
        *,
        is_active: bool = True,
        participants_lookup: ParticipantsLookup | None = None,
        idle_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._session_id = session_id
        self._current_user_id = current_user_id
        self._is_active = is_active
        self._participants_lookup = participants_lookup or (lambda _user_id: None)
        self._debouncer = TypingDebouncer(client.send_typing_indicator, idle_seconds)
        self.draft = ""

    @property
    def client(self) -> SessionChannelClient:
        return self._client

    @property
    def is_active(self) -> bool:
        return self._is_active

    @asynccontextmanager
    async def mounted(self) -> AsyncIterator[ShadowSessionChat]:
        try:
            if not self._is_active:
                logger.debug("Session %s not active, channel stays closed", self._session_id)
                yield self
            else:
                async with self._client.session(self._session_id, self._current_user_id):
                    yield self
        finally:
            self._debouncer.cancel()

    def on_input(self, text: str) -> None:
        self.draft = text
        self._debouncer.keystroke()

    def submit(self) -> bool:
        content = self.draft.strip()
        if not content or not self._client.connected or not self._is_active:
            return False
        if not self._client.send_message(content):
            return False
        self.draft = ""
        self._debouncer.message_sent()
        return True

    def rows(self) -> list[ChatRow]:
        return [self._row(msg) for msg in self._client.messages]

    def _row(self, msg: ChatMessage) -> ChatRow:
        return ChatRow(
            sender_id=msg.sender_id,
            sender_name=msg.sender_name,
            content=msg.content,
            time_label=format_time(msg.timestamp),
            is_current_user=msg.sender_id == self._current_user_id,
        )

    def typing_label(self) -> str | None:
        names = [
            self._participants_lookup(user_id) or "Someone"
            for user_id, is_typing in self._client.typing.items()
            if is_typing and user_id != self._current_user_id
        ]
        if not names:
            return None
        if len(names) == 1:
            return f"{names[0]} is typing..."
        return f"{len(names)} people are typing..."

    def status_text(self) -> str | None:
        if not self._is_active:
            return INACTIVE_TEXT
        if not self._client.connected:
            return CONNECTING_TEXT
        return None

    def empty_state(self) -> tuple[str, str] | None:
        if self._client.messages:
            return None
        return EMPTY_STATE
