from __future__ import annotations

import dataclasses
import logging

from swapride_chat.application.exceptions import ChatClientError
from swapride_chat.application.ports.api import ChatApi
from swapride_chat.application.ports.connection import Disposer
from swapride_chat.application.signals import ChangeSignal, Listener
from swapride_chat.config import settings
from swapride_chat.domain.entities.message import ConfirmedMessage, PendingMessage
from swapride_chat.domain.value_objects.enums import PendingState

logger = logging.getLogger(__name__)


class Outbox:
    """Sends that have left the composer but have not been confirmed.

    An entry is confirmed, and dropped, when a message carrying the same
    ``client_msg_id`` comes back from the server by any route.
    """

    def __init__(self, api: ChatApi, *, max_attempts: int | None = None) -> None:
        self._api = api
        self._max_attempts = max_attempts or settings.SEND_MAX_ATTEMPTS
        self._entries: dict[str, PendingMessage] = {}
        self._changed = ChangeSignal("outbox")

    @property
    def entries(self) -> tuple[PendingMessage, ...]:
        return tuple(self._entries.values())

    def subscribe(self, listener: Listener) -> Disposer:
        return self._changed.subscribe(listener)

    def get(self, local_id: str) -> PendingMessage | None:
        return self._entries.get(local_id)

    def for_conversation(self, conversation_id: str) -> list[PendingMessage]:
        return [e for e in self._entries.values() if e.conversation_id == conversation_id]

    def add(self, entry: PendingMessage) -> None:
        self._entries[entry.local_id] = entry
        self._changed.notify()

    def confirm(self, client_msg_id: str | None) -> PendingMessage | None:
        if client_msg_id is None:
            return None
        for local_id, entry in self._entries.items():
            if entry.client_msg_id == client_msg_id:
                del self._entries[local_id]
                logger.debug("Confirmed pending message %s", local_id)
                self._changed.notify()
                return entry
        return None

    def mark_failed(self, local_id: str) -> PendingMessage | None:
        return self._update(local_id, state=PendingState.FAILED)

    def mark_failed_by_client_msg_id(self, client_msg_id: str) -> PendingMessage | None:
        for entry in self._entries.values():
            if entry.client_msg_id == client_msg_id:
                return self.mark_failed(entry.local_id)
        return None

    def mark_retrying(self, local_id: str) -> PendingMessage | None:
        entry = self._entries.get(local_id)
        if entry is None:
            return None
        return self._update(local_id, state=PendingState.SENDING, attempts=entry.attempts + 1)

    async def redeliver(self) -> list[ConfirmedMessage]:
        """Push every still-sending entry once over REST.

        The backend deduplicates on ``client_msg_id``, so an entry whose
        original emit did reach it comes back as the existing message.
        """
        confirmed: list[ConfirmedMessage] = []
        for entry in [e for e in self._entries.values() if e.state == PendingState.SENDING]:
            if entry.attempts >= self._max_attempts:
                logger.warning(
                    "Pending message %s exhausted %d attempts", entry.local_id, entry.attempts,
                )
                self.mark_failed(entry.local_id)
                continue
            self._update(entry.local_id, attempts=entry.attempts + 1)
            try:
                message = await self._api.send_message(
                    entry.conversation_id,
                    content=entry.content,
                    attachment=entry.attachment,
                    client_msg_id=entry.client_msg_id,
                )
            except ChatClientError as exc:
                logger.warning("Redelivery of %s failed: %s", entry.local_id, exc)
                self.mark_failed(entry.local_id)
                continue
            self.confirm(entry.client_msg_id)
            confirmed.append(message)
        if confirmed:
            logger.info("Redelivered %d pending messages", len(confirmed))
        return confirmed

    def _update(self, local_id: str, **changes: object) -> PendingMessage | None:
        entry = self._entries.get(local_id)
        if entry is None:
            return None
        updated = dataclasses.replace(entry, **changes)  # type: ignore[arg-type]
        self._entries[local_id] = updated
        self._changed.notify()
        return updated
