from __future__ import annotations

import dataclasses
import logging

from swapride_chat.application.exceptions import ChatClientError
from swapride_chat.application.ports.api import ChatApi
from swapride_chat.application.ports.connection import Disposer
from swapride_chat.application.signals import ChangeSignal, Listener
from swapride_chat.domain.entities.conversation import Conversation, LastMessage
from swapride_chat.domain.entities.message import ConfirmedMessage

logger = logging.getLogger(__name__)


class ConversationDirectory:
    """Summary list of the viewer's conversations.

    Kept in server order. Unread counts are only as fresh as the last
    ``load()`` plus the live events applied since. A message id is counted
    at most once between loads.
    """

    def __init__(self, api: ChatApi, *, viewer_id: str) -> None:
        self._api = api
        self._viewer_id = viewer_id
        self._conversations: list[Conversation] = []
        # Message ids applied since the last load, per conversation.
        self._seen: dict[str, set[str]] = {}
        self._changed = ChangeSignal("conversation-directory")
        self.loading = False
        self.error: str | None = None

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return tuple(self._conversations)

    @property
    def total_unread(self) -> int:
        return sum(c.unread_count for c in self._conversations)

    def subscribe(self, listener: Listener) -> Disposer:
        return self._changed.subscribe(listener)

    def get(self, conversation_id: str) -> Conversation | None:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    async def load(self) -> list[Conversation]:
        self.loading = True
        self.error = None
        try:
            conversations = await self._api.list_conversations()
        except ChatClientError as exc:
            logger.warning("Failed to load conversations: %s", exc)
            conversations = []
            self.error = "Failed to load conversations"
        finally:
            self.loading = False
        self._conversations = list(conversations)
        self._seen = {}
        logger.debug("Loaded %d conversations", len(self._conversations))
        self._changed.notify()
        return list(self._conversations)

    def apply_inbound_message(self, message: ConfirmedMessage, *, active: bool = False) -> bool:
        index = self._index_of(message.conversation_id)
        if index is None:
            return False
        current = self._conversations[index]
        seen = self._seen.setdefault(message.conversation_id, set())
        unread = current.unread_count
        if not active and message.sender_id != self._viewer_id and message.id not in seen:
            unread += 1
        seen.add(message.id)
        self._conversations[index] = dataclasses.replace(
            current,
            last_message=LastMessage(
                content=message.content,
                created_at=message.created_at,
                sender_id=message.sender_id,
            ),
            unread_count=0 if active else unread,
        )
        self._changed.notify()
        return True

    def mark_read(self, conversation_id: str) -> bool:
        index = self._index_of(conversation_id)
        if index is None:
            return False
        current = self._conversations[index]
        if current.unread_count:
            self._conversations[index] = dataclasses.replace(current, unread_count=0)
            self._changed.notify()
        return True

    def _index_of(self, conversation_id: str) -> int | None:
        for index, conversation in enumerate(self._conversations):
            if conversation.id == conversation_id:
                return index
        return None
