from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from swapride_chat.application.dto.events import (
    ConversationRef,
    ErrorEvent,
    ErrorPayload,
    JoinConversation,
    LeaveConversation,
    MarkAsRead,
    MessageEvent,
    MessageReadEvent,
    OutboundEvent,
    SendMessage,
    Typing,
    TypingEvent,
    TypingSignal,
)
from swapride_chat.devserver.auth import HS256Verifier, Principal
from swapride_chat.devserver.delivery import deliver_message
from swapride_chat.devserver.exceptions import AppError
from swapride_chat.devserver.rooms import RoomManager
from swapride_chat.devserver.store import InMemoryChatStore
from swapride_chat.infrastructure.ws.protocol import parse_outbound

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED_CLOSE_CODE = 4001


def _authenticate(verifier: HS256Verifier, token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    principal = _authenticate(websocket.app.state.verifier, token)
    await websocket.accept()
    if principal is None:
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication failed")
        return

    rooms: RoomManager = websocket.app.state.rooms
    store: InMemoryChatStore = websocket.app.state.store
    await rooms.connect(websocket, principal.user_id)
    try:
        await _read_loop(websocket, principal, store, rooms)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.user_id)
    finally:
        rooms.disconnect(websocket, principal.user_id)


async def _read_loop(
    ws: WebSocket,
    principal: Principal,
    store: InMemoryChatStore,
    rooms: RoomManager,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            event = parse_outbound(raw)
        except PydanticValidationError:
            await rooms.send(ws, ErrorEvent(data=ErrorPayload(code="invalid_payload")))
            continue
        try:
            await _handle(ws, event, principal, store, rooms)
        except AppError as exc:
            client_msg_id = event.data.client_msg_id if isinstance(event, SendMessage) else None
            await rooms.send(
                ws,
                ErrorEvent(
                    data=ErrorPayload(code=exc.code, detail=exc.detail, client_msg_id=client_msg_id)
                ),
            )


async def _handle(
    ws: WebSocket,
    event: OutboundEvent,
    principal: Principal,
    store: InMemoryChatStore,
    rooms: RoomManager,
) -> None:
    user_id = principal.user_id

    if isinstance(event, JoinConversation):
        conversation_id = event.data.conversation_id
        store.get_for_participant(conversation_id, user_id)
        rooms.join(ws, conversation_id)

    elif isinstance(event, LeaveConversation):
        rooms.leave(ws, event.data.conversation_id)

    elif isinstance(event, SendMessage):
        data = event.data
        message, created = store.create_message(
            data.conversation_id,
            user_id,
            content=data.content,
            attachment=data.attachment,
            client_msg_id=data.client_msg_id,
        )
        if created:
            await deliver_message(store, rooms, message)
        else:
            # Repeat of a send that already landed: echo only to the sender.
            await rooms.send(ws, MessageEvent(data=message))

    elif isinstance(event, MarkAsRead):
        conversation_id = event.data.conversation_id
        store.mark_read(conversation_id, user_id)
        await rooms.send_to_user(
            user_id,
            MessageReadEvent(data=ConversationRef(conversation_id=conversation_id)),
        )

    elif isinstance(event, Typing):
        conversation_id = event.data.conversation_id
        store.get_for_participant(conversation_id, user_id)
        await rooms.broadcast(
            conversation_id,
            TypingEvent(
                data=TypingSignal(
                    user_id=user_id,
                    is_typing=event.data.is_typing,
                    conversation_id=conversation_id,
                )
            ),
            exclude=ws,
        )
