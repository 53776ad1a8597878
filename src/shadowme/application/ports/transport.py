from __future__ import annotations

from typing import Callable, Protocol


class ChannelTransport(Protocol):
    """One bidirectional text-frame connection.

    ``receive_text`` raises ``TransportClosed`` once the peer closed cleanly and
    ``TransportError`` on any other failure; ``send_text`` raises
    ``TransportError``.
    """

    async def connect(self) -> None: ...

    async def send_text(self, data: str) -> None: ...

    async def receive_text(self) -> str: ...

    async def close(self) -> None: ...

    @property
    def is_open(self) -> bool: ...


TransportFactory = Callable[[], ChannelTransport]
