from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class LastMessage:
    content: str | None
    created_at: datetime
    sender_id: str


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    participants: tuple[str, str]
    last_message: LastMessage | None
    unread_count: int = 0

    def other_participant(self, viewer_id: str) -> str:
        first, second = self.participants
        return second if first == viewer_id else first
