from __future__ import annotations

import bisect
import logging
from datetime import datetime

from swapride_chat.application.dto.events import ConversationRef, MarkAsRead
from swapride_chat.application.exceptions import ChatClientError, NotConnectedError
from swapride_chat.application.ports.api import ChatApi
from swapride_chat.application.ports.connection import Connection, Disposer
from swapride_chat.application.signals import ChangeSignal, Listener
from swapride_chat.domain.entities.message import ConfirmedMessage, DisplayMessage
from swapride_chat.services.outbox import Outbox

logger = logging.getLogger(__name__)


def _sort_key(message: ConfirmedMessage) -> datetime:
    return message.created_at


class MessageStream:
    """Ordered messages of the selected conversation.

    Confirmed messages are kept sorted by ``created_at``; a late delivery
    lands in its timestamp slot rather than at the end. Pending sends for
    the conversation are shown after them, in the order they were made.
    """

    def __init__(self, api: ChatApi, connection: Connection, outbox: Outbox) -> None:
        self._api = api
        self._connection = connection
        self._outbox = outbox
        self._conversation_id: str | None = None
        self._confirmed: list[ConfirmedMessage] = []
        self._ids: set[str] = set()
        self._load_token = 0
        self._changed = ChangeSignal("message-stream")
        self._outbox_disposer = outbox.subscribe(self._on_outbox_changed)
        self.loading = False
        self.error: str | None = None

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def messages(self) -> tuple[DisplayMessage, ...]:
        if self._conversation_id is None:
            return ()
        pending = self._outbox.for_conversation(self._conversation_id)
        return (*self._confirmed, *pending)

    @property
    def confirmed(self) -> tuple[ConfirmedMessage, ...]:
        return tuple(self._confirmed)

    def subscribe(self, listener: Listener) -> Disposer:
        """Called after every change, e.g. to scroll to the newest message."""
        return self._changed.subscribe(listener)

    async def load_history(self, conversation_id: str) -> bool:
        """Replace the stream with ``conversation_id``'s history.

        Returns False when the response is stale: a later load started, or
        the selection moved on, while this one was in flight.
        """
        self._load_token += 1
        token = self._load_token
        if conversation_id != self._conversation_id:
            self._conversation_id = conversation_id
            self._confirmed = []
            self._ids = set()
        self.loading = True
        self.error = None

        try:
            history = await self._api.list_messages(conversation_id)
        except ChatClientError as exc:
            if not self._is_current(token, conversation_id):
                return False
            logger.warning("Failed to load messages for %s: %s", conversation_id, exc)
            self.loading = False
            self.error = "Failed to load messages"
            self._changed.notify()
            return False

        if not self._is_current(token, conversation_id):
            logger.debug("Discarding stale history for %s", conversation_id)
            return False

        # Live messages that arrived while the fetch was in flight are kept.
        merged = {m.id: m for m in self._confirmed}
        for message in history:
            if message.conversation_id == conversation_id:
                merged.setdefault(message.id, message)
        self._confirmed = sorted(merged.values(), key=_sort_key)
        self._ids = set(merged)
        self.loading = False

        for message in self._confirmed:
            self._outbox.confirm(message.client_msg_id)
        logger.debug("Loaded %d messages for %s", len(self._confirmed), conversation_id)
        self._changed.notify()
        return True

    def append_if_new(self, message: ConfirmedMessage) -> bool:
        if message.conversation_id != self._conversation_id:
            return False
        if message.id in self._ids:
            return False
        bisect.insort(self._confirmed, message, key=_sort_key)
        self._ids.add(message.id)
        if self._outbox.confirm(message.client_msg_id) is None:
            self._changed.notify()
        return True

    async def mark_read(self, conversation_id: str | None = None) -> bool:
        conversation_id = conversation_id or self._conversation_id
        if conversation_id is None:
            return False
        try:
            await self._connection.emit(
                MarkAsRead(data=ConversationRef(conversation_id=conversation_id))
            )
        except NotConnectedError:
            logger.debug("markAsRead for %s skipped: not connected", conversation_id)
            return False
        return True

    def clear(self) -> None:
        self._load_token += 1
        self._conversation_id = None
        self._confirmed = []
        self._ids = set()
        self.loading = False
        self.error = None
        self._changed.notify()

    def close(self) -> None:
        self._outbox_disposer()

    def _is_current(self, token: int, conversation_id: str) -> bool:
        return token == self._load_token and conversation_id == self._conversation_id

    def _on_outbox_changed(self) -> None:
        if self._conversation_id is not None:
            self._changed.notify()
