"""In-process WebSocket registry: connections per user, rooms per conversation."""
from __future__ import annotations

import logging
from typing import Iterable

from fastapi import WebSocket
from pydantic import BaseModel

from swapride_chat.infrastructure.ws.protocol import encode_event

logger = logging.getLogger(__name__)


class RoomManager:
    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._rooms: dict[str, set[WebSocket]] = {}

    async def connect(self, ws: WebSocket, user_id: str) -> None:
        self._connections.setdefault(user_id, set()).add(ws)
        logger.debug("WS connected: %s (users=%d)", user_id, len(self._connections))

    def disconnect(self, ws: WebSocket, user_id: str) -> None:
        conns = self._connections.get(user_id)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[user_id]
        for conversation_id in list(self._rooms):
            self.leave(ws, conversation_id)
        logger.debug("WS disconnected: %s", user_id)

    def join(self, ws: WebSocket, conversation_id: str) -> None:
        self._rooms.setdefault(conversation_id, set()).add(ws)

    def leave(self, ws: WebSocket, conversation_id: str) -> None:
        members = self._rooms.get(conversation_id)
        if members:
            members.discard(ws)
            if not members:
                del self._rooms[conversation_id]

    async def broadcast(
        self,
        conversation_id: str,
        event: BaseModel,
        *,
        users: Iterable[str] = (),
        exclude: WebSocket | None = None,
    ) -> None:
        """Send to the room plus every connection of ``users``, once each."""
        targets = set(self._rooms.get(conversation_id, set()))
        for user_id in users:
            targets.update(self._connections.get(user_id, set()))
        targets.discard(exclude)  # type: ignore[arg-type]
        raw = encode_event(event)
        for ws in targets:
            try:
                await ws.send_text(raw)
            except Exception:
                logger.debug("Dropping unreachable socket in %s", conversation_id, exc_info=True)
                self.leave(ws, conversation_id)

    async def send(self, ws: WebSocket, event: BaseModel) -> None:
        await ws.send_text(encode_event(event))

    async def send_to_user(self, user_id: str, event: BaseModel) -> None:
        raw = encode_event(event)
        for ws in list(self._connections.get(user_id, set())):
            try:
                await ws.send_text(raw)
            except Exception:
                logger.debug("Dropping unreachable socket for %s", user_id, exc_info=True)
