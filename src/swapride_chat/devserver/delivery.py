from __future__ import annotations

from swapride_chat.application.dto.events import MessageEvent
from swapride_chat.application.dto.message import MessageRecord
from swapride_chat.devserver.rooms import RoomManager
from swapride_chat.devserver.store import InMemoryChatStore


async def deliver_message(
    store: InMemoryChatStore,
    rooms: RoomManager,
    message: MessageRecord,
) -> None:
    """Fan a stored message out to the room and to both participants."""
    await rooms.broadcast(
        message.conversation_id,
        MessageEvent(data=message),
        users=store.participants(message.conversation_id),
    )
