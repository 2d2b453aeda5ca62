from __future__ import annotations

from enum import StrEnum


class PendingState(StrEnum):
    SENDING = "sending"
    FAILED = "failed"


class AttachmentType(StrEnum):
    IMAGE = "image"
    FILE = "file"


class ConnectionStatus(StrEnum):
    CONNECTED = "connected"
    RECONNECTED = "reconnected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"
