from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ChatMessage:
    sender_id: str
    sender_name: str
    content: str
    timestamp: str
