from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class InMemoryUserDirectory:
    """Implements application.ports.users.UserDirectory.

    With ``open_registration`` unknown ids resolve to themselves.
    """

    def __init__(self, users: dict[str, str] | None = None, *, open_registration: bool = False) -> None:
        self._users = dict(users or {})
        self._open = open_registration

    def register(self, user_id: str, display_name: str) -> None:
        self._users[user_id] = display_name

    async def display_name(self, user_id: str) -> str | None:
        name = self._users.get(user_id)
        if name is None and self._open:
            logger.debug("Admitting unknown user %s", user_id)
            return user_id
        return name
