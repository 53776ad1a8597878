from __future__ import annotations

import asyncio
import logging
from typing import Callable

from shadowme.config import settings

logger = logging.getLogger(__name__)


class TypingDebouncer:
    """Coalesces keystrokes into typing on/off indicators.

    A keystroke sends ``True`` and (re)arms an idle handle; when the handle
    fires, ``False`` is sent once. At most one handle is pending at any time.
    """

    def __init__(
        self,
        send: Callable[[bool], None],
        idle_seconds: float | None = None,
    ) -> None:
        self._send = send
        self._idle_seconds = settings.TYPING_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def keystroke(self) -> None:
        self._send(True)
        self.reschedule()

    def reschedule(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._idle_seconds, self._on_idle)

    def cancel(self) -> bool:
        """Drop the pending handle; True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def message_sent(self) -> None:
        """A message went out: stop typing now instead of waiting for idle."""
        if self.cancel():
            self._send(False)

    def _on_idle(self) -> None:
        self._handle = None
        logger.debug("Typing idle after %.1fs", self._idle_seconds)
        self._send(False)
