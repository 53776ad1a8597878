"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from shadowme.application.exceptions import TransportError
from shadowme.application.ports.collaborators import QueryKey
from shadowme.services.session_channel import SessionChannelClient


@dataclass
class FakeTransport:
    """In-memory ChannelTransport: records outbound frames, replays queued inbound ones."""

    fail_connect: bool = False
    fail_send: bool = False
    sent: list[str] = field(default_factory=list)
    connects: int = 0
    closed: bool = False
    _open: bool = False
    _inbox: asyncio.Queue[str | Exception] = field(default_factory=asyncio.Queue)

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self) -> None:
        self.connects += 1
        if self.fail_connect:
            raise TransportError("connection refused")
        self._open = True

    async def send_text(self, data: str) -> None:
        if not self._open:
            raise TransportError("transport is not open")
        if self.fail_send:
            raise TransportError("broken pipe")
        self.sent.append(data)

    async def receive_text(self) -> str:
        item = await self._inbox.get()
        if isinstance(item, Exception):
            self._open = False
            raise item
        return item

    async def close(self) -> None:
        self._open = False
        self.closed = True

    def feed(self, frame: dict[str, Any] | str) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self, exc: Exception | None = None) -> None:
        self._inbox.put_nowait(exc or TransportError("connection reset"))

    def envelopes(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    def types(self) -> list[str]:
        return [env["type"] for env in self.envelopes()]


@dataclass
class RecordingInvalidator:
    keys: list[QueryKey] = field(default_factory=list)

    def invalidate(self, key: QueryKey) -> None:
        self.keys.append(key)


@dataclass
class RecordingNotifier:
    notes: list[tuple[str, str, str]] = field(default_factory=list)

    def notify(self, title: str, description: str, variant: str = "default") -> None:
        self.notes.append((title, description, variant))


@dataclass
class TransportPool:
    """Transport factory handing out a fresh FakeTransport per open()."""

    fail_connect: bool = False
    created: list[FakeTransport] = field(default_factory=list)

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(fail_connect=self.fail_connect)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


async def settle(rounds: int = 5) -> None:
    """Let the reader/writer tasks run until queued work is applied."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def chat_frame(
    content: str,
    *,
    sender_id: str = "u2",
    sender_name: str = "Bea",
    timestamp: str = "2024-01-01T00:00:00Z",
) -> dict[str, Any]:
    return {
        "type": "session_message",
        "payload": {
            "senderId": sender_id,
            "senderName": sender_name,
            "content": content,
            "timestamp": timestamp,
        },
    }


@pytest.fixture
def pool() -> TransportPool:
    return TransportPool()


@pytest.fixture
def invalidator() -> RecordingInvalidator:
    return RecordingInvalidator()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(pool, invalidator, notifier) -> SessionChannelClient:
    return SessionChannelClient(pool, invalidator, notifier)
