"""REST client for the chat endpoints of the marketplace backend."""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from swapride_chat.application.dto.conversation import ConversationRecord
from swapride_chat.application.dto.message import MessageRecord, SendMessageRequest
from swapride_chat.application.exceptions import (
    ApiError,
    ChatClientError,
    TransportError,
    UploadError,
    ValidationError,
)
from swapride_chat.application.mappers import conversation as conversation_mapper
from swapride_chat.application.mappers import message as message_mapper
from swapride_chat.config import settings
from swapride_chat.domain.entities.conversation import Conversation
from swapride_chat.domain.entities.message import Attachment, ConfirmedMessage

logger = logging.getLogger(__name__)

CONVERSATIONS_PATH = "/chat/conversations"
UPLOAD_PATH = "/upload"


def _unwrap(payload: Any, key: str | None = None) -> Any:
    """Strip the backend's ``{"data": {...}}`` envelope when present."""
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if key is not None and isinstance(payload, dict) and key in payload:
        payload = payload[key]
    return payload


class ChatApiClient:
    def __init__(
        self,
        *,
        token: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        upload_max_bytes: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        token = token if token is not None else settings.AUTH_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout_seconds or settings.HTTP_TIMEOUT_SECONDS,
            headers=headers,
            transport=transport,
        )
        self._upload_max_bytes = upload_max_bytes or settings.UPLOAD_MAX_BYTES

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=payload, files=files)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 401:
                logger.warning("Unauthorized request: %s %s", method, path)
            body_preview = (exc.response.text or "").strip().replace("\n", " ")[:200]
            raise ApiError(status_code, f"{method} {path} failed: {body_preview}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, f"{method} {path} returned invalid JSON") from exc

    async def list_conversations(self) -> list[Conversation]:
        items = _unwrap(await self._request("GET", CONVERSATIONS_PATH), "conversations")
        if not isinstance(items, list):
            raise ApiError(200, "Unexpected conversations payload")
        conversations: list[Conversation] = []
        for item in items:
            try:
                record = ConversationRecord.model_validate(item)
            except PydanticValidationError as exc:
                logger.warning("Skipping malformed conversation: %s", exc.errors(include_url=False))
                continue
            conversations.append(conversation_mapper.record_to_entity(record))
        return conversations

    async def list_messages(self, conversation_id: str) -> list[ConfirmedMessage]:
        path = f"{CONVERSATIONS_PATH}/{conversation_id}/messages"
        items = _unwrap(await self._request("GET", path), "messages")
        if not isinstance(items, list):
            raise ApiError(200, "Unexpected messages payload")
        messages: list[ConfirmedMessage] = []
        for item in items:
            try:
                record = MessageRecord.model_validate(item)
            except PydanticValidationError as exc:
                logger.warning("Skipping malformed message: %s", exc.errors(include_url=False))
                continue
            messages.append(message_mapper.record_to_entity(record))
        return messages

    async def send_message(
        self,
        conversation_id: str,
        *,
        content: str | None,
        attachment: Attachment | None = None,
        client_msg_id: str | None = None,
    ) -> ConfirmedMessage:
        body = SendMessageRequest(
            content=content,
            attachment=message_mapper.attachment_to_record(attachment) if attachment else None,
            client_msg_id=client_msg_id,
        )
        data = await self._request(
            "POST",
            f"{CONVERSATIONS_PATH}/{conversation_id}/messages",
            payload=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        try:
            record = MessageRecord.model_validate(_unwrap(data, "message"))
        except PydanticValidationError as exc:
            raise ApiError(200, "Unexpected message payload") from exc
        return message_mapper.record_to_entity(record)

    async def upload_attachment(self, path: Path) -> Attachment:
        """Upload one image and return where the image host put it."""
        path = Path(path)
        if not path.is_file():
            raise ValidationError(f"No such file: {path}")
        mime_type, _ = mimetypes.guess_type(path.name)
        if not mime_type or not mime_type.startswith("image/"):
            raise ValidationError("Please select an image file")
        size = path.stat().st_size
        if size > self._upload_max_bytes:
            raise ValidationError(
                f"Image size must be less than {self._upload_max_bytes // (1024 * 1024)}MB"
            )

        try:
            data = await self._request(
                "POST",
                UPLOAD_PATH,
                files={"image": (path.name, path.read_bytes(), mime_type)},
            )
        except ChatClientError as exc:
            error = UploadError(f"Upload failed: {exc.detail}")
            error.retryable = exc.retryable
            raise error from exc

        url = _unwrap(data).get("url") if isinstance(_unwrap(data), dict) else None
        if not isinstance(url, str) or not url:
            raise UploadError("Upload response carried no url")
        logger.debug("Uploaded %s (%d bytes) to %s", path.name, size, url)
        return Attachment(url=url)
