from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

from swapride_chat.application.dto.events import SendMessage, SendMessagePayload, Typing, TypingUpdate
from swapride_chat.application.exceptions import ChatClientError, NotConnectedError
from swapride_chat.application.mappers.message import attachment_to_record
from swapride_chat.application.ports.api import ChatApi
from swapride_chat.application.ports.clock import Clock, SystemClock
from swapride_chat.application.ports.connection import Connection
from swapride_chat.config import settings
from swapride_chat.domain.entities.message import Attachment, PendingMessage
from swapride_chat.domain.value_objects.enums import PendingState
from swapride_chat.domain.value_objects.ids import new_client_msg_id
from swapride_chat.services.outbox import Outbox

logger = logging.getLogger(__name__)


class Composer:
    """Draft, typing signals and the send operation for one conversation."""

    def __init__(
        self,
        connection: Connection,
        api: ChatApi,
        outbox: Outbox,
        *,
        viewer_id: str,
        clock: Clock | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        self._connection = connection
        self._api = api
        self._outbox = outbox
        self._viewer_id = viewer_id
        self._clock = clock or SystemClock()
        self._debounce_seconds = (
            settings.TYPING_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._conversation_id: str | None = None
        self._typing_task: asyncio.Task[None] | None = None
        self._typing_active = False
        self.draft = ""
        self.attachment: Path | None = None
        self.sending = False
        self.uploading = False

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def can_send(self) -> bool:
        return (
            self._conversation_id is not None
            and self._connection.connected
            and not self.sending
            and not self.uploading
        )

    async def bind(self, conversation_id: str | None) -> None:
        if conversation_id == self._conversation_id:
            return
        await self._stop_typing()
        self._conversation_id = conversation_id
        self.draft = ""
        self.attachment = None

    async def update_draft(self, text: str) -> None:
        self.draft = text
        if self._conversation_id is None:
            return
        if self._typing_task is not None:
            self._typing_task.cancel()
            self._typing_task = None
        await self._emit_typing(True)
        if self._typing_task is not None:
            # Armed by an overlapping update while the emit was in flight.
            self._typing_task.cancel()
        self._typing_task = asyncio.create_task(
            self._typing_stop_after(self._debounce_seconds), name="composer-typing-debounce",
        )

    def attach(self, path: str | Path) -> None:
        self.attachment = Path(path)

    def clear_attachment(self) -> None:
        self.attachment = None

    async def send(
        self,
        text: str | None = None,
        attachment: str | Path | None = None,
    ) -> PendingMessage | None:
        """Send ``text`` (default: the draft) with an optional image.

        Returns the pending entry, or None when the send was not accepted.
        Upload failures propagate and leave the draft untouched.
        """
        content = (self.draft if text is None else text).strip()
        source = Path(attachment) if attachment is not None else self.attachment
        if not content and source is None:
            return None
        conversation_id = self._conversation_id
        if conversation_id is None:
            logger.debug("Send ignored: no conversation selected")
            return None
        if not self._connection.connected:
            logger.debug("Send rejected: not connected")
            return None
        if self.sending:
            return None

        self.sending = True
        try:
            uploaded: Attachment | None = None
            if source is not None:
                self.uploading = True
                try:
                    uploaded = await self._api.upload_attachment(source)
                except ChatClientError as exc:
                    logger.error("Attachment upload failed, send aborted: %s", exc)
                    raise
                finally:
                    self.uploading = False

            entry = PendingMessage(
                local_id=uuid.uuid4().hex,
                client_msg_id=new_client_msg_id(),
                conversation_id=conversation_id,
                sender_id=self._viewer_id,
                content=content or None,
                attachment=uploaded,
                created_at=self._clock.now(),
            )
            self._outbox.add(entry)
            self.draft = ""
            self.attachment = None
            await self._emit_send(entry)
            await self._stop_typing()
            return entry
        finally:
            self.sending = False

    async def retry(self, local_id: str) -> PendingMessage | None:
        entry = self._outbox.get(local_id)
        if entry is None or entry.state != PendingState.FAILED:
            return None
        if not self._connection.connected:
            return None
        entry = self._outbox.mark_retrying(local_id)
        if entry is not None:
            await self._emit_send(entry)
        return entry

    async def close(self) -> None:
        if self._typing_task is not None:
            self._typing_task.cancel()
            self._typing_task = None

    async def _emit_send(self, entry: PendingMessage) -> None:
        event = SendMessage(
            data=SendMessagePayload(
                conversation_id=entry.conversation_id,
                content=entry.content,
                attachment=attachment_to_record(entry.attachment) if entry.attachment else None,
                client_msg_id=entry.client_msg_id,
            )
        )
        try:
            await self._connection.emit(event)
        except NotConnectedError:
            logger.warning(
                "Connection dropped while sending %s; it stays pending until reconnect",
                entry.local_id,
            )

    async def _typing_stop_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._typing_task = None
        await self._emit_typing(False)

    async def _stop_typing(self) -> None:
        if self._typing_task is not None:
            self._typing_task.cancel()
            self._typing_task = None
        if self._typing_active:
            await self._emit_typing(False)

    async def _emit_typing(self, is_typing: bool) -> None:
        if self._conversation_id is None or not self._connection.connected:
            self._typing_active = False
            return
        try:
            await self._connection.emit(
                Typing(data=TypingUpdate(conversation_id=self._conversation_id, is_typing=is_typing))
            )
        except NotConnectedError:
            logger.debug("Typing signal dropped: not connected")
            self._typing_active = False
            return
        self._typing_active = is_typing
