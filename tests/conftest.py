"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import inspect
import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncIterator

import pytest
from pydantic import BaseModel

from swapride_chat.application.dto.events import ConversationRef, JoinConversation, LeaveConversation
from swapride_chat.application.dto.message import AttachmentRecord, MessageRecord
from swapride_chat.application.exceptions import ApiError, ChatClientError, NotConnectedError
from swapride_chat.domain.entities.conversation import Conversation, LastMessage
from swapride_chat.domain.entities.message import Attachment, ConfirmedMessage
from swapride_chat.domain.value_objects.enums import ConnectionStatus
from swapride_chat.infrastructure.ws.protocol import encode_event

VIEWER_ID = "alice"
OTHER_ID = "bob"
BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def ts(seconds: float) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


def make_message(
    *,
    message_id: str | None = None,
    conversation_id: str = "c1",
    sender_id: str = OTHER_ID,
    content: str | None = "hello",
    created_at: datetime | None = None,
    client_msg_id: str | None = None,
    attachment: Attachment | None = None,
) -> ConfirmedMessage:
    return ConfirmedMessage(
        id=message_id or uuid.uuid4().hex,
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        attachment=attachment,
        created_at=created_at or datetime.now(timezone.utc),
        client_msg_id=client_msg_id,
    )


def make_record(message: ConfirmedMessage) -> MessageRecord:
    return MessageRecord(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        attachment=(
            AttachmentRecord(url=message.attachment.url, type=message.attachment.type)
            if message.attachment
            else None
        ),
        created_at=message.created_at,
        read=message.read,
        client_msg_id=message.client_msg_id,
    )


def make_conversation(
    *,
    conversation_id: str = "c1",
    participants: tuple[str, str] = (VIEWER_ID, OTHER_ID),
    unread_count: int = 0,
    last_content: str | None = None,
) -> Conversation:
    return Conversation(
        id=conversation_id,
        participants=participants,
        last_message=(
            LastMessage(content=last_content, created_at=BASE_TIME, sender_id=participants[1])
            if last_content is not None
            else None
        ),
        unread_count=unread_count,
    )


@dataclass
class FixedClock:
    current: datetime = BASE_TIME

    def now(self) -> datetime:
        return self.current


@dataclass
class FakeConnection:
    """In-memory stand-in for ConnectionManager.

    ``join_gates`` hold join_room until released.
    """

    connected: bool = True
    fail_emits: bool = False
    emitted: list[BaseModel] = field(default_factory=list)
    rooms: set[str] = field(default_factory=set)
    join_gates: dict[str, asyncio.Event] = field(default_factory=dict)
    _handlers: dict[str, list[Any]] = field(default_factory=dict)
    _state_handlers: list[Any] = field(default_factory=list)

    def on(self, event_type: str, handler: Any):
        self._handlers.setdefault(event_type, []).append(handler)
        return lambda: self.off(event_type, handler)

    def off(self, event_type: str, handler: Any) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def on_state_change(self, handler: Any):
        self._state_handlers.append(handler)

        def dispose() -> None:
            if handler in self._state_handlers:
                self._state_handlers.remove(handler)

        return dispose

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    async def emit(self, event: BaseModel) -> None:
        if not self.connected or self.fail_emits:
            raise NotConnectedError("not connected")
        self.emitted.append(event)

    async def join_room(self, conversation_id: str) -> None:
        gate = self.join_gates.get(conversation_id)
        if gate is not None:
            await gate.wait()
        self.rooms.add(conversation_id)
        if self.connected:
            self.emitted.append(JoinConversation(data=ConversationRef(conversation_id=conversation_id)))

    async def leave_room(self, conversation_id: str) -> None:
        self.rooms.discard(conversation_id)
        if self.connected:
            self.emitted.append(LeaveConversation(data=ConversationRef(conversation_id=conversation_id)))

    async def deliver(self, event: BaseModel) -> None:
        for handler in list(self._handlers.get(getattr(event, "type"), [])):
            result = handler(event)
            if inspect.isawaitable(result):
                await result

    async def set_status(self, status: ConnectionStatus) -> None:
        self.connected = status in (ConnectionStatus.CONNECTED, ConnectionStatus.RECONNECTED)
        for handler in list(self._state_handlers):
            result = handler(status)
            if inspect.isawaitable(result):
                await result

    def emitted_types(self) -> list[str]:
        return [getattr(e, "type") for e in self.emitted]

    def emitted_of(self, event_type: str) -> list[Any]:
        return [e for e in self.emitted if getattr(e, "type") == event_type]


@dataclass
class FakeChatApi:
    """In-memory ChatApi. ``gates`` hold list_messages until released."""

    conversations: list[Conversation] = field(default_factory=list)
    histories: dict[str, list[ConfirmedMessage]] = field(default_factory=dict)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    fail_conversations: bool = False
    fail_messages: set[str] = field(default_factory=set)
    fail_send: bool = False
    upload_error: ChatClientError | None = None
    uploaded: list[Path] = field(default_factory=list)
    sent: list[dict[str, Any]] = field(default_factory=list)
    conversation_calls: int = 0
    message_calls: list[str] = field(default_factory=list)

    async def list_conversations(self) -> list[Conversation]:
        self.conversation_calls += 1
        if self.fail_conversations:
            raise ApiError(500, "boom")
        return list(self.conversations)

    async def list_messages(self, conversation_id: str) -> list[ConfirmedMessage]:
        self.message_calls.append(conversation_id)
        gate = self.gates.get(conversation_id)
        if gate is not None:
            await gate.wait()
        if conversation_id in self.fail_messages:
            raise ApiError(503, "unavailable")
        return list(self.histories.get(conversation_id, []))

    async def send_message(
        self,
        conversation_id: str,
        *,
        content: str | None,
        attachment: Attachment | None = None,
        client_msg_id: str | None = None,
    ) -> ConfirmedMessage:
        if self.fail_send:
            raise ApiError(500, "send failed")
        self.sent.append(
            {
                "conversation_id": conversation_id,
                "content": content,
                "attachment": attachment,
                "client_msg_id": client_msg_id,
            }
        )
        message = make_message(
            conversation_id=conversation_id,
            sender_id=VIEWER_ID,
            content=content,
            attachment=attachment,
            client_msg_id=client_msg_id,
        )
        self.histories.setdefault(conversation_id, []).append(message)
        return message

    async def upload_attachment(self, path: Path) -> Attachment:
        self.uploaded.append(Path(path))
        if self.upload_error is not None:
            raise self.upload_error
        return Attachment(url=f"https://img.test/{Path(path).name}")


class FakeSocket:
    """Client-side websocket double fed from the test."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    def push(self, event: BaseModel | str) -> None:
        self._incoming.put_nowait(event if isinstance(event, str) else encode_event(event))

    def drop(self) -> None:
        self._incoming.put_nowait(None)

    async def send(self, raw: str) -> None:
        if self.closed:
            raise ConnectionError("socket closed")
        self.sent.append(json.loads(raw))

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeServer:
    """Connect factory handing out FakeSockets; ``failures`` are raised first."""

    def __init__(self) -> None:
        self.sockets: list[FakeSocket] = []
        self.urls: list[str] = []
        self.failures: list[BaseException] = []

    def factory(self, url: str):
        self.urls.append(url)
        return self._open()

    @asynccontextmanager
    async def _open(self) -> AsyncIterator[FakeSocket]:
        if self.failures:
            raise self.failures.pop(0)
        socket = FakeSocket()
        self.sockets.append(socket)
        yield socket

    @property
    def current(self) -> FakeSocket:
        return self.sockets[-1]


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def api() -> FakeChatApi:
    return FakeChatApi()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
