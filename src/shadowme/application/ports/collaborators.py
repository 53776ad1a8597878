"""Ports for the external data-fetch layer and user-facing notifications."""
from __future__ import annotations

from typing import Literal, Protocol

QueryKey = tuple[str, ...]


class QueryInvalidator(Protocol):
    def invalidate(self, key: QueryKey) -> None: ...


class Notifier(Protocol):
    def notify(
        self,
        title: str,
        description: str,
        variant: Literal["default", "destructive"] = "default",
    ) -> None: ...
