from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated user behind one relay connection."""

    user_id: str
    display_name: str
