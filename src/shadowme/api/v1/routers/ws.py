from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from shadowme.api.deps import RelayDep
from shadowme.application.exceptions import AuthenticationError, ProtocolError
from shadowme.config import settings
from shadowme.domain.value_objects.enums import ErrorCode, InboundType
from shadowme.infrastructure.ws.manager import RoomConnectionManager
from shadowme.infrastructure.ws.protocol import ErrorPayload
from shadowme.services.session_relay import SessionRelay

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def ws_session_channel(websocket: WebSocket, relay: RelayDep) -> None:
    conn_id = await relay.manager.connect(websocket)

    heartbeat_task = asyncio.create_task(
        _heartbeat(relay.manager, conn_id), name=f"ws-heartbeat-{conn_id}",
    )
    try:
        await _read_loop(websocket, relay, conn_id)
    except WebSocketDisconnect:
        pass
    except AuthenticationError as exc:
        logger.warning("WS auth failed on %s: %s", conn_id, exc.detail)
        await relay.manager.send(
            conn_id, InboundType.ERROR, ErrorPayload(code=ErrorCode.AUTH_FAILED, detail=exc.detail),
        )
        await websocket.close(code=4001, reason="Authentication failed")
    except Exception:
        logger.exception("WS error for %s", conn_id)
    finally:
        heartbeat_task.cancel()
        await relay.disconnect(conn_id)


async def _heartbeat(manager: RoomConnectionManager, conn_id: str) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await manager.send(conn_id, InboundType.PING)
    except asyncio.CancelledError:
        pass


async def _read_loop(ws: WebSocket, relay: SessionRelay, conn_id: str) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            await relay.handle(conn_id, raw)
        except ProtocolError as exc:
            await relay.manager.send(
                conn_id, InboundType.ERROR, ErrorPayload(code=exc.code, detail=exc.detail or None),
            )
