from __future__ import annotations

from swapride_chat.application.dto.message import AttachmentRecord, MessageRecord
from swapride_chat.domain.entities.message import Attachment, ConfirmedMessage


def record_to_entity(record: MessageRecord) -> ConfirmedMessage:
    return ConfirmedMessage(
        id=record.id,
        conversation_id=record.conversation_id,
        sender_id=record.sender_id,
        content=record.content,
        attachment=attachment_to_entity(record.attachment) if record.attachment else None,
        created_at=record.created_at,
        read=record.read,
        client_msg_id=record.client_msg_id,
    )


def attachment_to_entity(record: AttachmentRecord) -> Attachment:
    return Attachment(url=record.url, type=record.type)


def attachment_to_record(entity: Attachment) -> AttachmentRecord:
    return AttachmentRecord(url=entity.url, type=entity.type)
