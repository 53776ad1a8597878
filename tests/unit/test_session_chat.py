from __future__ import annotations

import asyncio

import pytest

from shadowme.services.session_chat import (
    CONNECTING_TEXT,
    EMPTY_STATE,
    INACTIVE_TEXT,
    ShadowSessionChat,
    format_time,
)
from tests.conftest import chat_frame, settle

IDLE = 0.1


def make_view(client, *, is_active: bool = True, names: dict[str, str] | None = None) -> ShadowSessionChat:
    return ShadowSessionChat(
        client,
        "sess-1",
        "u1",
        is_active=is_active,
        participants_lookup=(names or {}).get,
        idle_seconds=IDLE,
    )


@pytest.mark.parametrize(
    ("timestamp", "label"),
    [
        ("2024-01-01T15:04:00Z", "3:04 PM"),
        ("2024-01-01T00:05:00Z", "12:05 AM"),
        ("2024-01-01T12:30:00+00:00", "12:30 PM"),
        ("yesterday", "yesterday"),
    ],
)
def test_format_time(timestamp, label):
    assert format_time(timestamp) == label


@pytest.mark.asyncio
async def test_inactive_session_never_connects(client, pool):
    view = make_view(client, is_active=False)

    async with view.mounted():
        assert view.status_text() == INACTIVE_TEXT
        view.on_input("hello")
        assert view.submit() is False

    assert pool.created == []


@pytest.mark.asyncio
async def test_rows_mark_own_lines(client, pool):
    view = make_view(client)
    async with view.mounted():
        assert view.empty_state() == EMPTY_STATE
        pool.last.feed(chat_frame("mine", sender_id="u1", sender_name="Ann"))
        pool.last.feed(chat_frame("theirs", timestamp="2024-01-01T09:15:00Z"))
        await settle(10)

        rows = view.rows()
        assert [(r.content, r.is_current_user) for r in rows] == [("mine", True), ("theirs", False)]
        assert rows[1].time_label == "9:15 AM"
        assert view.empty_state() is None


@pytest.mark.asyncio
async def test_typing_label(client, pool):
    view = make_view(client, names={"u2": "Bea"})
    async with view.mounted():
        transport = pool.last
        assert view.typing_label() is None

        transport.feed({"type": "user_typing", "payload": {"userId": "u1", "isTyping": True}})
        transport.feed({"type": "user_typing", "payload": {"userId": "u2", "isTyping": True}})
        await settle(10)
        assert view.typing_label() == "Bea is typing..."

        transport.feed({"type": "user_typing", "payload": {"userId": "u9", "isTyping": True}})
        await settle()
        assert view.typing_label() == "2 people are typing..."

        transport.feed({"type": "user_typing", "payload": {"userId": "u2", "isTyping": False}})
        await settle()
        assert view.typing_label() == "Someone is typing..."


@pytest.mark.asyncio
async def test_status_text_tracks_connection(client, pool):
    view = make_view(client)
    assert view.status_text() == CONNECTING_TEXT

    async with view.mounted():
        assert view.status_text() is None
        pool.last.drop()
        await settle()
        assert view.status_text() == CONNECTING_TEXT


@pytest.mark.asyncio
async def test_submit_sends_and_stops_typing_once(client, pool):
    view = make_view(client)
    async with view.mounted():
        view.on_input("  hey  ")
        assert view.submit() is True
        assert view.draft == ""

        await asyncio.sleep(IDLE * 3)
        await client.flush()
        assert pool.last.envelopes()[2:] == [
            {"type": "typing", "payload": {"sessionId": "sess-1", "isTyping": True}},
            {"type": "session_message", "payload": {"sessionId": "sess-1", "content": "hey"}},
            {"type": "typing", "payload": {"sessionId": "sess-1", "isTyping": False}},
        ]


@pytest.mark.asyncio
async def test_submit_refuses_blank_draft(client, pool):
    view = make_view(client)
    async with view.mounted():
        view.on_input("   ")
        assert view.submit() is False
        assert view.draft == "   "
        await client.flush()
        assert "session_message" not in pool.last.types()


@pytest.mark.asyncio
async def test_unmount_cancels_idle_timer_and_leaves(client, pool):
    view = make_view(client)
    async with view.mounted():
        view.on_input("h")

    await asyncio.sleep(IDLE * 3)
    types = pool.last.types()
    assert types == ["auth", "join_shadow_session", "typing", "leave_shadow_session"]
