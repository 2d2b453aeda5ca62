from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from swapride_chat.application.dto.common import WireModel
from swapride_chat.domain.value_objects.enums import AttachmentType


class AttachmentRecord(WireModel):
    url: str
    type: AttachmentType = AttachmentType.IMAGE


class MessageRecord(WireModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"), serialization_alias="id")
    conversation_id: str = Field(
        validation_alias=AliasChoices("conversationId", "conversation_id", "conversation"),
        serialization_alias="conversationId",
    )
    sender_id: str = Field(
        validation_alias=AliasChoices("senderId", "sender_id", "sender"),
        serialization_alias="senderId",
    )
    content: str | None = None
    attachment: AttachmentRecord | None = None
    created_at: datetime
    read: bool = False
    client_msg_id: str | None = None

    @field_validator("conversation_id", "sender_id", mode="before")
    @classmethod
    def _ref_id(cls, value: Any) -> Any:
        """Accept a bare id or a populated ``{"_id": ...}`` document."""
        if isinstance(value, dict):
            return value.get("_id") or value.get("id")
        return value


class SendMessageRequest(WireModel):
    content: str | None = None
    attachment: AttachmentRecord | None = None
    client_msg_id: str | None = None
