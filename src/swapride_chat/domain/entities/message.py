from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from swapride_chat.domain.value_objects.enums import AttachmentType, PendingState


@dataclass(frozen=True, slots=True)
class Attachment:
    url: str
    type: AttachmentType = AttachmentType.IMAGE


@dataclass(frozen=True, slots=True)
class ConfirmedMessage:
    """A message the server has persisted."""

    id: str
    conversation_id: str
    sender_id: str
    content: str | None
    attachment: Attachment | None
    created_at: datetime
    read: bool = False
    client_msg_id: str | None = None
    kind: Literal["confirmed"] = "confirmed"


@dataclass(frozen=True, slots=True)
class PendingMessage:
    """A locally sent message awaiting its server echo.

    Matched to the echo by ``client_msg_id``, which travels with the
    outbound event.
    """

    local_id: str
    client_msg_id: str
    conversation_id: str
    sender_id: str
    content: str | None
    attachment: Attachment | None
    created_at: datetime
    state: PendingState = PendingState.SENDING
    attempts: int = 1
    kind: Literal["pending"] = "pending"


DisplayMessage = ConfirmedMessage | PendingMessage
