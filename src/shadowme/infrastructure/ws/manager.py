"""In-process WebSocket connection manager for session rooms."""
from __future__ import annotations

import logging
import uuid

from fastapi import WebSocket
from pydantic import BaseModel

from shadowme.application.dto.identity import Identity
from shadowme.infrastructure.ws.protocol import encode

logger = logging.getLogger(__name__)


class RoomConnectionManager:
    """Tracks relay connections, their identities and session-room membership.

    Presence is per user: a user with two connections in one room joins once
    and leaves when the last of them leaves.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._identities: dict[str, Identity] = {}
        self._rooms: dict[str, dict[str, None]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        conn_id = uuid.uuid4().hex
        self._connections[conn_id] = ws
        logger.debug("WS connected: %s (total=%d)", conn_id, len(self._connections))
        return conn_id

    def disconnect(self, conn_id: str) -> list[str]:
        """Forget a connection; returns the rooms its user no longer occupies."""
        self._connections.pop(conn_id, None)
        joined = [sid for sid, members in self._rooms.items() if conn_id in members]
        vacated = [sid for sid in joined if self.leave(conn_id, sid)]
        self._identities.pop(conn_id, None)
        logger.debug("WS disconnected: %s", conn_id)
        return vacated

    def authenticate(self, conn_id: str, identity: Identity) -> None:
        self._identities[conn_id] = identity

    def identity(self, conn_id: str) -> Identity | None:
        return self._identities.get(conn_id)

    def is_member(self, conn_id: str, session_id: str) -> bool:
        return conn_id in self._rooms.get(session_id, {})

    def join(self, conn_id: str, session_id: str) -> bool:
        """Add the connection to a room; True when its user was not present yet."""
        user_id = self._identities[conn_id].user_id
        members = self._rooms.setdefault(session_id, {})
        if conn_id in members:
            return False
        first = not self._user_present(members, user_id)
        members[conn_id] = None
        return first

    def leave(self, conn_id: str, session_id: str) -> bool:
        """Remove the connection from a room; True when its user is gone from it."""
        members = self._rooms.get(session_id)
        if not members or conn_id not in members:
            return False
        del members[conn_id]
        user_id = self._identities[conn_id].user_id
        if not members:
            del self._rooms[session_id]
            return True
        return not self._user_present(members, user_id)

    def participants(self, session_id: str) -> list[Identity]:
        """Users with a live connection in the room.

        A connection whose send failed stays a member until its handler calls
        ``disconnect``, which reports the departure, but is no longer listed.
        """
        seen: dict[str, Identity] = {}
        for conn_id in self._rooms.get(session_id, {}):
            if conn_id not in self._connections:
                continue
            identity = self._identities[conn_id]
            seen.setdefault(identity.user_id, identity)
        return list(seen.values())

    def _user_present(self, members: dict[str, None], user_id: str) -> bool:
        return any(self._identities[c].user_id == user_id for c in members)

    async def send(self, conn_id: str, event_type: str, payload: BaseModel | None = None) -> None:
        """Send an envelope to one connection."""
        ws = self._connections.get(conn_id)
        if ws is None:
            return
        try:
            await ws.send_text(encode(event_type, payload))
        except Exception:
            logger.debug("WS send failed for %s", conn_id, exc_info=True)
            self._connections.pop(conn_id, None)

    async def broadcast(
        self,
        session_id: str,
        event_type: str,
        payload: BaseModel | None = None,
        *,
        exclude: str | None = None,
    ) -> int:
        """Send an envelope to every connection in a room; returns deliveries."""
        raw = encode(event_type, payload)
        dead: list[str] = []
        delivered = 0
        for conn_id in list(self._rooms.get(session_id, {})):
            if conn_id == exclude:
                continue
            ws = self._connections.get(conn_id)
            if ws is None:
                continue
            try:
                await ws.send_text(raw)
                delivered += 1
            except Exception:
                dead.append(conn_id)
        for conn_id in dead:
            logger.debug("Dropping dead WS connection %s", conn_id)
            self._connections.pop(conn_id, None)
        return delivered
