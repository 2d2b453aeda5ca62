from __future__ import annotations

from swapride_chat.application.dto.conversation import ConversationRecord
from swapride_chat.domain.entities.conversation import Conversation, LastMessage


def record_to_entity(record: ConversationRecord) -> Conversation:
    last = record.last_message
    first, second = record.participants
    return Conversation(
        id=record.id,
        participants=(first, second),
        last_message=(
            LastMessage(content=last.content, created_at=last.created_at, sender_id=last.sender_id)
            if last is not None
            else None
        ),
        unread_count=record.unread_count,
    )
