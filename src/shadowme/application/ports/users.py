from __future__ import annotations

from typing import Protocol


class UserDirectory(Protocol):
    async def display_name(self, user_id: str) -> str | None: ...
