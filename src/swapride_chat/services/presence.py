from __future__ import annotations

import asyncio
import logging

from swapride_chat.application.ports.connection import Disposer
from swapride_chat.application.signals import ChangeSignal, Listener
from swapride_chat.config import settings

logger = logging.getLogger(__name__)


class TypingIndicator:
    """Best-effort "other party is typing" flag.

    A ``True`` signal holds for ``expiry_seconds`` unless refreshed; a
    ``False`` signal clears it at once.
    """

    def __init__(self, *, viewer_id: str, expiry_seconds: float | None = None) -> None:
        self._viewer_id = viewer_id
        self._expiry_seconds = (
            settings.TYPING_EXPIRY_SECONDS if expiry_seconds is None else expiry_seconds
        )
        self._expiry_task: asyncio.Task[None] | None = None
        self._changed = ChangeSignal("typing-indicator")
        self.is_typing = False
        self.user_id: str | None = None

    def subscribe(self, listener: Listener) -> Disposer:
        return self._changed.subscribe(listener)

    def on_typing_event(self, user_id: str, is_typing: bool) -> None:
        if user_id == self._viewer_id:
            return
        self._cancel_expiry()
        if is_typing:
            self._expiry_task = asyncio.create_task(
                self._expire_after(self._expiry_seconds), name=f"typing-expiry-{user_id}",
            )
            self._set(True, user_id)
        else:
            self._set(False, None)

    def reset(self) -> None:
        self._cancel_expiry()
        self._set(False, None)

    def close(self) -> None:
        self._cancel_expiry()

    async def _expire_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._expiry_task = None
        logger.debug("Typing indicator for %s expired", self.user_id)
        self._set(False, None)

    def _cancel_expiry(self) -> None:
        if self._expiry_task is not None:
            self._expiry_task.cancel()
            self._expiry_task = None

    def _set(self, is_typing: bool, user_id: str | None) -> None:
        changed = is_typing != self.is_typing
        self.is_typing = is_typing
        self.user_id = user_id
        if changed:
            self._changed.notify()
