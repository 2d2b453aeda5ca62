"""Client side of the chat WebSocket: one shared connection per session."""
from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import random
from typing import Any, AsyncContextManager, Callable
from urllib.parse import urlencode

import websockets
from pydantic import BaseModel

from swapride_chat.application.dto.events import (
    ConversationRef,
    InboundEvent,
    JoinConversation,
    LeaveConversation,
)
from swapride_chat.application.exceptions import NotConnectedError
from swapride_chat.application.ports.connection import (
    Disposer,
    EventHandler,
    StateHandler,
)
from swapride_chat.config import settings
from swapride_chat.domain.value_objects.enums import ConnectionStatus
from swapride_chat.infrastructure.ws.protocol import encode_event, parse_inbound

logger = logging.getLogger(__name__)

# Authentication failure; retrying with the same token cannot succeed.
FATAL_CLOSE_CODES = frozenset({4001})

ConnectFactory = Callable[[str], AsyncContextManager[Any]]


def calculate_reconnect_backoff(
    attempt: int,
    *,
    base_seconds: float = 1.0,
    max_seconds: float = 30.0,
    rand_float: Callable[[], float] = random.random,
) -> float:
    """Exponential delay with +/-20% jitter, capped at ``max_seconds``."""
    if base_seconds <= 0.0 or max_seconds <= 0.0:
        return 0.0
    normalized_attempt = min(max(attempt, 0), 32)
    scaled = base_seconds * (2**normalized_attempt)
    jitter_factor = 0.8 + (0.4 * min(max(rand_float(), 0.0), 1.0))
    return min(max_seconds, scaled * jitter_factor)


def close_code(exc: BaseException) -> int | None:
    received = getattr(exc, "rcvd", None)
    received_code = getattr(received, "code", None)
    if isinstance(received_code, int):
        return received_code
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    return None


class ConnectionManager:
    """Owns the duplex connection, its room subscriptions and listeners.

    Reconnects with bounded exponential backoff and re-joins tracked rooms
    after every reconnect. Events that arrive while disconnected are lost;
    listeners learn about gaps through ``ConnectionStatus.RECONNECTED``.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        url: str | None = None,
        connect_factory: ConnectFactory | None = None,
        reconnect_base_seconds: float | None = None,
        reconnect_max_seconds: float | None = None,
        reconnect_max_attempts: int | None = None,
        rand_float: Callable[[], float] = random.random,
    ) -> None:
        self._token = token if token is not None else settings.AUTH_TOKEN
        self._url = url or settings.WS_URL
        self._connect_factory: ConnectFactory = connect_factory or websockets.connect
        self._base_seconds = (
            settings.RECONNECT_BASE_SECONDS if reconnect_base_seconds is None else reconnect_base_seconds
        )
        self._max_seconds = (
            settings.RECONNECT_MAX_SECONDS if reconnect_max_seconds is None else reconnect_max_seconds
        )
        self._max_attempts = (
            settings.RECONNECT_MAX_ATTEMPTS if reconnect_max_attempts is None else reconnect_max_attempts
        )
        self._rand_float = rand_float

        self._handlers: dict[str, list[EventHandler]] = {}
        self._state_handlers: list[StateHandler] = []
        self._rooms: set[str] = set()
        self._websocket: Any = None
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._connected_event = asyncio.Event()
        self._ever_connected = False
        self._status = ConnectionStatus.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self._websocket is not None and self._connected_event.is_set()

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def rooms(self) -> frozenset[str]:
        return frozenset(self._rooms)

    def connection_url(self) -> str:
        if not self._token:
            return self._url
        separator = "&" if "?" in self._url else "?"
        return f"{self._url}{separator}{urlencode({'token': self._token})}"

    async def connect(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="chat-connection")

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def disconnect(self) -> None:
        self._stop_event.set()
        websocket = self._websocket
        if websocket is not None:
            with contextlib.suppress(Exception):
                await websocket.close()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._websocket = None
        self._connected_event.clear()
        await self._set_status(ConnectionStatus.CLOSED)

    # -- listeners -----------------------------------------------------------

    def on(self, event_type: str, handler: EventHandler) -> Disposer:
        self._handlers.setdefault(event_type, []).append(handler)
        return lambda: self.off(event_type, handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._handlers[event_type]

    def on_state_change(self, handler: StateHandler) -> Disposer:
        self._state_handlers.append(handler)

        def dispose() -> None:
            if handler in self._state_handlers:
                self._state_handlers.remove(handler)

        return dispose

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))

    # -- outbound ------------------------------------------------------------

    async def emit(self, event: BaseModel) -> None:
        websocket = self._websocket
        event_type = getattr(event, "type", type(event).__name__)
        if websocket is None or not self._connected_event.is_set():
            raise NotConnectedError(f"Cannot emit {event_type}: not connected")
        try:
            await websocket.send(encode_event(event))
        except Exception as exc:
            raise NotConnectedError(f"Connection lost while emitting {event_type}") from exc

    async def join_room(self, conversation_id: str) -> None:
        self._rooms.add(conversation_id)
        await self._emit_quietly(JoinConversation(data=ConversationRef(conversation_id=conversation_id)))

    async def leave_room(self, conversation_id: str) -> None:
        self._rooms.discard(conversation_id)
        await self._emit_quietly(LeaveConversation(data=ConversationRef(conversation_id=conversation_id)))

    async def _emit_quietly(self, event: BaseModel) -> None:
        if not self.connected:
            return
        try:
            await self.emit(event)
        except NotConnectedError:
            logger.debug("Room change %s not delivered", event)

    # -- connection loop -----------------------------------------------------

    async def _run(self) -> None:
        attempt = 0
        while not self._stop_event.is_set():
            opened = False
            fatal = False
            try:
                async with self._connect_factory(self.connection_url()) as websocket:
                    opened = True
                    await self._on_open(websocket)
                    await self._read_loop(websocket)
                logger.info("Chat connection closed")
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                code = close_code(exc)
                if code in FATAL_CLOSE_CODES:
                    fatal = True
                    logger.error("Chat connection rejected (close code %s); not reconnecting", code)
                else:
                    logger.warning("Chat connection error: %s", exc)
            finally:
                if opened:
                    await self._on_lost()

            if fatal or self._stop_event.is_set():
                break
            if opened:
                attempt = 0
            if attempt >= self._max_attempts:
                logger.error("Giving up on chat connection after %d reconnect attempts", attempt)
                break
            delay = calculate_reconnect_backoff(
                attempt,
                base_seconds=self._base_seconds,
                max_seconds=self._max_seconds,
                rand_float=self._rand_float,
            )
            attempt += 1
            logger.info(
                "Reconnecting in %.2fs (attempt %d/%d)", delay, attempt, self._max_attempts,
            )
            await asyncio.sleep(delay)

        await self._set_status(ConnectionStatus.CLOSED)

    async def _on_open(self, websocket: Any) -> None:
        self._websocket = websocket
        self._connected_event.set()
        status = ConnectionStatus.RECONNECTED if self._ever_connected else ConnectionStatus.CONNECTED
        self._ever_connected = True
        for conversation_id in sorted(self._rooms):
            await self._emit_quietly(
                JoinConversation(data=ConversationRef(conversation_id=conversation_id))
            )
        logger.info("Chat connection %s (rooms=%d)", status, len(self._rooms))
        await self._set_status(status)

    async def _on_lost(self) -> None:
        self._websocket = None
        self._connected_event.clear()
        await self._set_status(ConnectionStatus.DISCONNECTED)

    async def _read_loop(self, websocket: Any) -> None:
        async for raw in websocket:
            event = parse_inbound(raw)
            if event is None:
                continue
            await self._dispatch(event)

    async def _dispatch(self, event: InboundEvent) -> None:
        for handler in list(self._handlers.get(event.type, ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", event.type)

    async def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        for handler in list(self._state_handlers):
            try:
                result = handler(status)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("State handler failed for %s", status)
