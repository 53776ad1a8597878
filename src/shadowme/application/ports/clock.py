from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def iso_z(ts: datetime) -> str:
    """ISO-8601 UTC timestamp with a ``Z`` suffix, as sent on the wire."""
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
