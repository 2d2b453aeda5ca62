"""Wires the messaging components to one connection and one API client."""
from __future__ import annotations

import logging

from swapride_chat.application.dto.events import ErrorEvent, MessageEvent, MessageReadEvent, TypingEvent
from swapride_chat.application.mappers.message import record_to_entity
from swapride_chat.application.ports.api import ChatApi
from swapride_chat.application.ports.clock import Clock
from swapride_chat.application.ports.connection import Connection, Disposer
from swapride_chat.domain.value_objects.enums import ConnectionStatus
from swapride_chat.services.composer import Composer
from swapride_chat.services.conversation_directory import ConversationDirectory
from swapride_chat.services.message_stream import MessageStream
from swapride_chat.services.outbox import Outbox
from swapride_chat.services.presence import TypingIndicator

logger = logging.getLogger(__name__)


class ChatSession:
    """Messaging state for one signed-in viewer.

    Every listener registered on the connection is held as a disposer and
    released by ``close()``.
    """

    def __init__(
        self,
        connection: Connection,
        api: ChatApi,
        *,
        viewer_id: str,
        clock: Clock | None = None,
        typing_debounce_seconds: float | None = None,
        typing_expiry_seconds: float | None = None,
        send_max_attempts: int | None = None,
    ) -> None:
        self.connection = connection
        self.api = api
        self.viewer_id = viewer_id
        self.outbox = Outbox(api, max_attempts=send_max_attempts)
        self.directory = ConversationDirectory(api, viewer_id=viewer_id)
        self.stream = MessageStream(api, connection, self.outbox)
        self.composer = Composer(
            connection,
            api,
            self.outbox,
            viewer_id=viewer_id,
            clock=clock,
            debounce_seconds=typing_debounce_seconds,
        )
        self.typing = TypingIndicator(viewer_id=viewer_id, expiry_seconds=typing_expiry_seconds)
        self._disposers: list[Disposer] = []
        self._selected: str | None = None

    @property
    def selected_conversation_id(self) -> str | None:
        return self._selected

    async def __aenter__(self) -> "ChatSession":
        await self.start()
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._disposers:
            return
        self._disposers = [
            self.connection.on("message", self._on_message),
            self.connection.on("messageRead", self._on_message_read),
            self.connection.on("typing", self._on_typing),
            self.connection.on("error", self._on_error),
            self.connection.on_state_change(self._on_state_change),
        ]
        await self.directory.load()

    async def select(self, conversation_id: str) -> None:
        if conversation_id == self._selected:
            return
        previous, self._selected = self._selected, conversation_id
        if previous is not None:
            await self.connection.leave_room(previous)
            if not self._is_selected(conversation_id):
                return
        self.typing.reset()
        await self.composer.bind(conversation_id)
        if not self._is_selected(conversation_id):
            # A newer select may have bound the composer first.
            await self.composer.bind(self._selected)
            return
        self.directory.mark_read(conversation_id)
        await self.connection.join_room(conversation_id)
        if not self._is_selected(conversation_id):
            await self.connection.leave_room(conversation_id)
            return
        if await self.stream.load_history(conversation_id) and self._is_selected(conversation_id):
            await self.stream.mark_read(conversation_id)

    async def resync(self) -> None:
        """Catch up on whatever was missed while disconnected."""
        logger.info("Resyncing chat state (selected=%s)", self._selected)
        await self.directory.load()
        selected = self._selected
        if selected is not None:
            self.directory.mark_read(selected)
            if await self.stream.load_history(selected):
                await self.stream.mark_read(selected)
        for message in await self.outbox.redeliver():
            active = message.conversation_id == self._selected
            if active:
                self.stream.append_if_new(message)
            self.directory.apply_inbound_message(message, active=active)

    def _is_selected(self, conversation_id: str) -> bool:
        return self._selected == conversation_id

    async def close(self) -> None:
        for dispose in reversed(self._disposers):
            dispose()
        self._disposers = []
        if self._selected is not None:
            await self.connection.leave_room(self._selected)
            self._selected = None
        await self.composer.close()
        self.typing.close()
        self.stream.close()

    async def _on_message(self, event: MessageEvent) -> None:
        message = record_to_entity(event.data)
        active = message.conversation_id == self._selected
        if active:
            self.stream.append_if_new(message)
        self.outbox.confirm(message.client_msg_id)
        self.directory.apply_inbound_message(message, active=active)
        if active and message.sender_id != self.viewer_id:
            await self.stream.mark_read(message.conversation_id)

    def _on_message_read(self, event: MessageReadEvent) -> None:
        self.directory.mark_read(event.data.conversation_id)

    def _on_error(self, event: ErrorEvent) -> None:
        error = event.data
        logger.warning("Server rejected a request: %s %s", error.code, error.detail or "")
        if error.client_msg_id is None:
            return
        entry = self.outbox.mark_failed_by_client_msg_id(error.client_msg_id)
        if entry is not None:
            logger.warning("Send %s rejected by server (%s)", entry.local_id, error.code)

    def _on_typing(self, event: TypingEvent) -> None:
        signal = event.data
        if self._selected is None:
            return
        if signal.conversation_id is not None and signal.conversation_id != self._selected:
            return
        self.typing.on_typing_event(signal.user_id, signal.is_typing)

    async def _on_state_change(self, status: ConnectionStatus) -> None:
        if status == ConnectionStatus.DISCONNECTED:
            self.typing.reset()
        elif status == ConnectionStatus.RECONNECTED:
            await self.resync()
