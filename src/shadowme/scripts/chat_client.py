"""Terminal chat client for a shadow session.

    python -m shadowme.scripts.chat_client --session sess-1 --user u1
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from shadowme.api.middleware.correlation_id import configure_logging
from shadowme.config import settings
from shadowme.infrastructure.cache.query_cache import QueryCache
from shadowme.infrastructure.notifier import LoggingNotifier
from shadowme.infrastructure.ws.transport import WebsocketsTransport
from shadowme.services.session_channel import SessionChannelClient
from shadowme.services.session_chat import ShadowSessionChat

logger = logging.getLogger(__name__)


class _TerminalRenderer:
    """Prints rows and typing-label changes as the channel state moves."""

    def __init__(self, view: ShadowSessionChat) -> None:
        self._view = view
        self._printed = 0
        self._typing: str | None = None
        self._status: str | None = None

    def __call__(self) -> None:
        rows = self._view.rows()
        for row in rows[self._printed:]:
            who = "you" if row.is_current_user else row.sender_name
            print(f"[{row.time_label}] {who}: {row.content}")
        self._printed = len(rows)

        label = self._view.typing_label()
        if label != self._typing and label is not None:
            print(f"  ({label})")
        self._typing = label

        status = self._view.status_text()
        if status != self._status and status is not None:
            print(f"-- {status}")
        self._status = status


async def run(url: str, session_id: str, user_id: str) -> None:
    client = SessionChannelClient(
        lambda: WebsocketsTransport(url, open_timeout=settings.WS_OPEN_TIMEOUT_SECONDS),
        QueryCache(),
        LoggingNotifier(),
    )
    view = ShadowSessionChat(client, session_id, user_id)
    unsubscribe = client.add_listener(_TerminalRenderer(view))
    loop = asyncio.get_running_loop()

    try:
        async with view.mounted():
            while client.connected:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                view.on_input(line.rstrip("\n"))
                if not view.submit():
                    logger.debug("Nothing sent")
    finally:
        unsubscribe()


def main() -> None:
    parser = argparse.ArgumentParser(description="Join a shadow session chat from the terminal")
    parser.add_argument("--url", default=settings.WS_URL)
    parser.add_argument("--session", required=True, dest="session_id")
    parser.add_argument("--user", required=True, dest="user_id")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(run(args.url, args.session_id, args.user_id))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
