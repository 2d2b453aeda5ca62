"""Closed set of events carried over the duplex connection.

Every frame is an envelope ``{"type": ..., "data": {...}}``. Inbound and
outbound variants are discriminated on ``type``; anything outside these
sets is rejected at the connection boundary.
"""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from swapride_chat.application.dto.common import WireModel
from swapride_chat.application.dto.message import AttachmentRecord, MessageRecord


class ConversationRef(WireModel):
    conversation_id: str


class TypingSignal(WireModel):
    user_id: str
    is_typing: bool
    conversation_id: str | None = None


class TypingUpdate(WireModel):
    conversation_id: str
    is_typing: bool


class SendMessagePayload(WireModel):
    conversation_id: str
    content: str | None = None
    attachment: AttachmentRecord | None = None
    client_msg_id: str


class ErrorPayload(WireModel):
    code: str
    detail: str | None = None
    client_msg_id: str | None = None


class _Envelope(BaseModel):
    model_config = ConfigDict(frozen=True)


# Server -> client


class MessageEvent(_Envelope):
    type: Literal["message"] = "message"
    data: MessageRecord


class MessageReadEvent(_Envelope):
    type: Literal["messageRead"] = "messageRead"
    data: ConversationRef


class TypingEvent(_Envelope):
    type: Literal["typing"] = "typing"
    data: TypingSignal


class ErrorEvent(_Envelope):
    type: Literal["error"] = "error"
    data: ErrorPayload


InboundEvent = Annotated[
    Union[MessageEvent, MessageReadEvent, TypingEvent, ErrorEvent],
    Field(discriminator="type"),
]


# Client -> server


class JoinConversation(_Envelope):
    type: Literal["joinConversation"] = "joinConversation"
    data: ConversationRef


class LeaveConversation(_Envelope):
    type: Literal["leaveConversation"] = "leaveConversation"
    data: ConversationRef


class SendMessage(_Envelope):
    type: Literal["sendMessage"] = "sendMessage"
    data: SendMessagePayload


class MarkAsRead(_Envelope):
    type: Literal["markAsRead"] = "markAsRead"
    data: ConversationRef


class Typing(_Envelope):
    type: Literal["typing"] = "typing"
    data: TypingUpdate


OutboundEvent = Annotated[
    Union[JoinConversation, LeaveConversation, SendMessage, MarkAsRead, Typing],
    Field(discriminator="type"),
]
