from __future__ import annotations

from fastapi import APIRouter

from swapride_chat.application.dto.conversation import ConversationRecord
from swapride_chat.application.dto.message import MessageRecord, SendMessageRequest
from swapride_chat.devserver.delivery import deliver_message
from swapride_chat.devserver.deps import CurrentPrincipal, RoomsDep, StoreDep

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationRecord])
async def list_conversations(
    principal: CurrentPrincipal,
    store: StoreDep,
) -> list[ConversationRecord]:
    return store.list_for_user(principal.user_id)


@router.get("/{conversation_id}/messages", response_model=list[MessageRecord])
async def list_messages(
    conversation_id: str,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> list[MessageRecord]:
    return store.list_messages(conversation_id, principal.user_id)


@router.post("/{conversation_id}/messages", response_model=MessageRecord, status_code=201)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    store: StoreDep,
    rooms: RoomsDep,
) -> MessageRecord:
    message, created = store.create_message(
        conversation_id,
        principal.user_id,
        content=body.content,
        attachment=body.attachment,
        client_msg_id=body.client_msg_id,
    )
    if created:
        await deliver_message(store, rooms, message)
    return message
