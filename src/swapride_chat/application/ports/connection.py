from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from pydantic import BaseModel

from swapride_chat.domain.value_objects.enums import ConnectionStatus

EventHandler = Callable[[Any], Awaitable[None] | None]
StateHandler = Callable[[ConnectionStatus], Awaitable[None] | None]
Disposer = Callable[[], None]


class Connection(Protocol):
    """The shared duplex channel, passed explicitly to each component."""

    @property
    def connected(self) -> bool: ...

    def on(self, event_type: str, handler: EventHandler) -> Disposer: ...

    def off(self, event_type: str, handler: EventHandler) -> None: ...

    def on_state_change(self, handler: StateHandler) -> Disposer: ...

    async def emit(self, event: BaseModel) -> None:
        """Send one event. Raises NotConnectedError while disconnected."""
        ...

    async def join_room(self, conversation_id: str) -> None: ...

    async def leave_room(self, conversation_id: str) -> None: ...
