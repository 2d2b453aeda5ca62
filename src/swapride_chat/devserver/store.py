"""In-memory chat backend state. Nothing survives a restart."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from swapride_chat.application.dto.conversation import ConversationRecord, LastMessageRecord
from swapride_chat.application.dto.message import AttachmentRecord, MessageRecord
from swapride_chat.devserver.exceptions import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoredConversation:
    id: str
    participants: tuple[str, str]
    created_at: datetime
    last_activity_at: datetime


@dataclass(frozen=True, slots=True)
class StoredUpload:
    id: str
    filename: str
    content_type: str
    data: bytes


class InMemoryChatStore:
    def __init__(self) -> None:
        self._conversations: dict[str, StoredConversation] = {}
        self._messages: dict[str, list[MessageRecord]] = {}
        self._unread: dict[tuple[str, str], int] = {}
        self._uploads: dict[str, StoredUpload] = {}

    def start_conversation(self, first: str, second: str) -> StoredConversation:
        """Return the two users' conversation, creating it on first contact."""
        if first == second:
            raise ValidationError("A conversation needs two different users")
        pair = {first, second}
        for conversation in self._conversations.values():
            if set(conversation.participants) == pair:
                return conversation
        now = datetime.now(timezone.utc)
        conversation = StoredConversation(
            id=uuid.uuid4().hex,
            participants=(first, second),
            created_at=now,
            last_activity_at=now,
        )
        self._conversations[conversation.id] = conversation
        self._messages[conversation.id] = []
        logger.debug("Created conversation %s between %s and %s", conversation.id, first, second)
        return conversation

    def get_for_participant(self, conversation_id: str, user_id: str) -> StoredConversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if user_id not in conversation.participants:
            raise ForbiddenError("Not a participant of this conversation")
        return conversation

    def list_for_user(self, user_id: str) -> list[ConversationRecord]:
        owned = [c for c in self._conversations.values() if user_id in c.participants]
        owned.sort(key=lambda c: c.last_activity_at, reverse=True)
        return [self._conversation_record(c, user_id) for c in owned]

    def list_messages(self, conversation_id: str, user_id: str) -> list[MessageRecord]:
        self.get_for_participant(conversation_id, user_id)
        return list(self._messages[conversation_id])

    def create_message(
        self,
        conversation_id: str,
        sender_id: str,
        *,
        content: str | None,
        attachment: AttachmentRecord | None = None,
        client_msg_id: str | None = None,
    ) -> tuple[MessageRecord, bool]:
        """Create a message idempotently.

        Returns (message, created). A repeated ``client_msg_id`` from the
        same sender returns the existing message with created=False.
        """
        conversation = self.get_for_participant(conversation_id, sender_id)
        content = (content or "").strip() or None
        if content is None and attachment is None:
            raise ValidationError("Message needs content or an attachment")

        messages = self._messages[conversation_id]
        if client_msg_id is not None:
            for existing in messages:
                if existing.sender_id == sender_id and existing.client_msg_id == client_msg_id:
                    return existing, False

        now = datetime.now(timezone.utc)
        message = MessageRecord(
            id=uuid.uuid4().hex,
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            attachment=attachment,
            created_at=now,
            client_msg_id=client_msg_id,
        )
        messages.append(message)
        conversation.last_activity_at = now
        for participant in conversation.participants:
            if participant != sender_id:
                key = (conversation_id, participant)
                self._unread[key] = self._unread.get(key, 0) + 1
        return message, True

    def mark_read(self, conversation_id: str, user_id: str) -> None:
        self.get_for_participant(conversation_id, user_id)
        self._unread[(conversation_id, user_id)] = 0
        self._messages[conversation_id] = [
            m.model_copy(update={"read": True}) if m.sender_id != user_id and not m.read else m
            for m in self._messages[conversation_id]
        ]

    def participants(self, conversation_id: str) -> tuple[str, str]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation.participants

    def save_upload(self, filename: str, content_type: str, data: bytes) -> StoredUpload:
        upload = StoredUpload(
            id=uuid.uuid4().hex, filename=filename, content_type=content_type, data=data,
        )
        self._uploads[upload.id] = upload
        return upload

    def get_upload(self, upload_id: str) -> StoredUpload:
        upload = self._uploads.get(upload_id)
        if upload is None:
            raise NotFoundError("Upload not found")
        return upload

    def _conversation_record(self, conversation: StoredConversation, viewer_id: str) -> ConversationRecord:
        messages = self._messages[conversation.id]
        last = messages[-1] if messages else None
        return ConversationRecord(
            id=conversation.id,
            participants=list(conversation.participants),
            last_message=(
                LastMessageRecord(
                    content=last.content, created_at=last.created_at, sender_id=last.sender_id,
                )
                if last is not None
                else None
            ),
            unread_count=self._unread.get((conversation.id, viewer_id), 0),
        )
