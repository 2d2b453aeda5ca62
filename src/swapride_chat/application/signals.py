from __future__ import annotations

import logging
from typing import Callable

from swapride_chat.application.ports.connection import Disposer

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ChangeSignal:
    """Synchronous change notification with disposer-based unsubscription."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Disposer:
        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("%s listener failed", self._name)
