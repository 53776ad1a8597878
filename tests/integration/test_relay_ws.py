"""Relay smoke tests over FastAPI's test websocket client."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from shadowme.app import create_app
from shadowme.application.exceptions import AuthenticationError, NotFoundError, ValidationError
from shadowme.infrastructure.users.directory import InMemoryUserDirectory


@pytest.fixture
def client():
    users = InMemoryUserDirectory({"u1": "Ann", "u2": "Bea"})
    with TestClient(create_app(users=users)) as test_client:
        yield test_client


def _join(ws, user_id: str, session_id: str = "sess-1") -> None:
    ws.send_json({"type": "auth", "payload": {"userId": user_id}})
    ws.send_json({"type": "join_shadow_session", "payload": {"sessionId": session_id}})
    _barrier(ws)


def _barrier(ws) -> None:
    """Frames on one socket are handled in order: the reply to a no-op proves earlier ones landed."""
    ws.send_json({"type": "noop"})
    assert ws.receive_json()["payload"]["code"] == "unknown_type"


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert "X-Request-ID" in resp.headers


def test_unknown_user_is_rejected(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "payload": {"userId": "ghost"}})
        assert ws.receive_json()["payload"]["code"] == "auth_failed"
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_text()
    assert exc_info.value.code == 4001


def test_envelopes_before_auth_are_refused(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join_shadow_session", "payload": {"sessionId": "sess-1"}})
        assert ws.receive_json() == {
            "type": "error",
            "payload": {"code": "unauthenticated", "detail": "Send auth first"},
        }


def test_bad_frames_get_error_envelopes(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{broken")
        assert ws.receive_json()["payload"]["code"] == "invalid_payload"

        _join(ws, "u1")
        ws.send_json({"type": "reaction_added", "payload": {}})
        assert ws.receive_json()["payload"] == {"code": "unknown_type", "detail": "reaction_added"}

        ws.send_json({"type": "session_message", "payload": {"sessionId": "sess-1", "content": "  "}})
        assert ws.receive_json()["payload"]["code"] == "invalid_data"

        ws.send_json({"type": "session_message", "payload": {"sessionId": "other", "content": "hi"}})
        assert ws.receive_json()["payload"]["code"] == "not_joined"


def test_chat_round_trip_between_two_participants(client):
    with client.websocket_connect("/ws") as ann:
        _join(ann, "u1")
        with client.websocket_connect("/ws") as bea:
            _join(bea, "u2")
            assert ann.receive_json() == {"type": "participant_joined", "payload": {"userId": "u2"}}

            bea.send_json({"type": "typing", "payload": {"sessionId": "sess-1", "isTyping": True}})
            assert ann.receive_json() == {
                "type": "user_typing",
                "payload": {"userId": "u2", "isTyping": True},
            }

            bea.send_json({"type": "session_message", "payload": {"sessionId": "sess-1", "content": " hi "}})
            for ws in (ann, bea):
                frame = ws.receive_json()
                assert frame["type"] == "session_message"
                assert frame["payload"]["senderId"] == "u2"
                assert frame["payload"]["senderName"] == "Bea"
                assert frame["payload"]["content"] == "hi"
                assert frame["payload"]["timestamp"].endswith("Z")

            resp = client.get("/api/v1/shadow-sessions/sess-1/participants")
            assert resp.json() == [
                {"userId": "u1", "displayName": "Ann"},
                {"userId": "u2", "displayName": "Bea"},
            ]

            bea.send_json({"type": "leave_shadow_session", "payload": {"sessionId": "sess-1"}})
            assert ann.receive_json() == {"type": "participant_left", "payload": {"userId": "u2"}}


def test_disconnect_announces_departure(client):
    with client.websocket_connect("/ws") as ann:
        _join(ann, "u1")
        with client.websocket_connect("/ws") as bea:
            _join(bea, "u2")
            assert ann.receive_json()["type"] == "participant_joined"
        assert ann.receive_json() == {"type": "participant_left", "payload": {"userId": "u2"}}


def test_session_update_is_pushed_to_the_room(client):
    resp = client.post("/api/v1/shadow-sessions/sess-1/updates")
    assert resp.status_code == 404

    with client.websocket_connect("/ws") as ann:
        _join(ann, "u1")
        ann.send_json({"type": "pong"})
        resp = client.post("/api/v1/shadow-sessions/sess-1/updates")
        assert resp.status_code == 202
        assert resp.json() == {"session_id": "sess-1", "delivered": 1}
        assert ann.receive_json() == {"type": "session_update"}


def test_connection_cannot_switch_user(client):
    with client.websocket_connect("/ws") as bea:
        _join(bea, "u2")
        with client.websocket_connect("/ws") as ann:
            _join(ann, "u1")
            assert bea.receive_json() == {"type": "participant_joined", "payload": {"userId": "u1"}}

            ann.send_json({"type": "auth", "payload": {"userId": "u2"}})
            assert ann.receive_json() == {
                "type": "error",
                "payload": {"code": "already_authenticated", "detail": "Connection belongs to u1"},
            }

            ann.send_json({"type": "auth", "payload": {"userId": "u1"}})
            _barrier(ann)

            resp = client.get("/api/v1/shadow-sessions/sess-1/participants")
            assert [p["userId"] for p in resp.json()] == ["u2", "u1"]

            ann.send_json({"type": "leave_shadow_session", "payload": {"sessionId": "sess-1"}})
            assert bea.receive_json() == {"type": "participant_left", "payload": {"userId": "u1"}}


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (NotFoundError("no such session"), 404),
        (ValidationError("bad session id"), 422),
        (AuthenticationError("who are you"), 401),
    ],
)
def test_app_errors_map_to_http_statuses(error, status):
    app = create_app(users=InMemoryUserDirectory({}))

    @app.get("/boom")
    async def _boom():
        raise error

    with TestClient(app) as test_client:
        resp = test_client.get("/boom")
    assert resp.status_code == status
    assert resp.json() == {"detail": error.detail}
