from __future__ import annotations

from pathlib import Path
from typing import Protocol

from swapride_chat.domain.entities.conversation import Conversation
from swapride_chat.domain.entities.message import Attachment, ConfirmedMessage


class ChatApi(Protocol):
    async def list_conversations(self) -> list[Conversation]: ...

    async def list_messages(self, conversation_id: str) -> list[ConfirmedMessage]: ...

    async def send_message(
        self,
        conversation_id: str,
        *,
        content: str | None,
        attachment: Attachment | None = None,
        client_msg_id: str | None = None,
    ) -> ConfirmedMessage:
        """Create a message over REST. Idempotent on ``client_msg_id``."""
        ...

    async def upload_attachment(self, path: Path) -> Attachment: ...
