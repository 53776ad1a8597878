"""Client-side transport over the ``websockets`` asyncio implementation."""
from __future__ import annotations

import logging

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedOK, WebSocketException
from websockets.protocol import State

from shadowme.application.exceptions import TransportClosed, TransportError

logger = logging.getLogger(__name__)


class WebsocketsTransport:
    """Implements application.ports.transport.ChannelTransport."""

    def __init__(self, url: str, *, open_timeout: float = 10.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: ClientConnection | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self) -> None:
        try:
            self._ws = await connect(self._url, open_timeout=self._open_timeout)
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"cannot connect to {self._url}: {exc}") from exc
        logger.debug("WS transport open: %s", self._url)

    async def send_text(self, data: str) -> None:
        if self._ws is None:
            raise TransportError("transport is not connected")
        try:
            await self._ws.send(data)
        except ConnectionClosedOK as exc:
            raise TransportClosed(str(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(str(exc)) from exc

    async def receive_text(self) -> str:
        if self._ws is None:
            raise TransportError("transport is not connected")
        try:
            data = await self._ws.recv()
        except ConnectionClosedOK as exc:
            raise TransportClosed(str(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(str(exc)) from exc
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        return data

    async def close(self) -> None:
        if self._ws is None:
            return
        try:
            await self._ws.close()
        finally:
            logger.debug("WS transport closed: %s", self._url)
