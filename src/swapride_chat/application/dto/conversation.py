from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from swapride_chat.application.dto.common import WireModel


class LastMessageRecord(WireModel):
    content: str | None = None
    created_at: datetime
    sender_id: str = Field(
        validation_alias=AliasChoices("senderId", "sender_id", "sender"),
        serialization_alias="senderId",
    )

    @field_validator("sender_id", mode="before")
    @classmethod
    def _sender_ref(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("_id") or value.get("id")
        return value


class ConversationRecord(WireModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"), serialization_alias="id")
    participants: list[str]
    last_message: LastMessageRecord | None = None
    unread_count: int = Field(default=0, ge=0)

    @field_validator("participants", mode="before")
    @classmethod
    def _participant_refs(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                (p.get("_id") or p.get("id")) if isinstance(p, dict) else p
                for p in value
            ]
        return value

    @field_validator("participants")
    @classmethod
    def _exactly_two(cls, value: list[str]) -> list[str]:
        if len(value) != 2:
            raise ValueError("a conversation has exactly two participants")
        return value
