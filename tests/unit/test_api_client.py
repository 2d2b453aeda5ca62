from __future__ import annotations

import json

import httpx
import pytest

from swapride_chat.application.exceptions import ApiError, TransportError, UploadError, ValidationError
from swapride_chat.domain.entities.message import Attachment
from swapride_chat.infrastructure.http.api_client import ChatApiClient

BASE_URL = "http://chat.test/api/v1"


def make_client(handler, **kwargs) -> ChatApiClient:
    return ChatApiClient(
        token="tok",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_list_conversations_unwraps_envelope_and_skips_malformed():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "success": True,
            "data": {
                "conversations": [
                    {
                        "_id": "c1",
                        "participants": [{"_id": "alice", "name": "Alice"}, {"_id": "bob"}],
                        "lastMessage": {
                            "content": "deal",
                            "createdAt": "2026-01-01T12:00:00Z",
                            "sender": {"_id": "bob"},
                        },
                        "unreadCount": 2,
                    },
                    {"_id": "broken", "participants": ["alice"]},
                ],
            },
        })

    async with make_client(handler) as client:
        conversations = await client.list_conversations()

    assert [c.id for c in conversations] == ["c1"]
    assert conversations[0].participants == ("alice", "bob")
    assert conversations[0].unread_count == 2
    assert conversations[0].last_message.sender_id == "bob"
    assert seen[0].url.path == "/api/v1/chat/conversations"
    assert seen[0].headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_list_messages_accepts_bare_list():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/chat/conversations/c1/messages"
        return httpx.Response(200, json=[
            {
                "id": "m1",
                "conversationId": "c1",
                "senderId": "bob",
                "content": "hi",
                "createdAt": "2026-01-01T12:00:00Z",
                "read": True,
            },
        ])

    async with make_client(handler) as client:
        [message] = await client.list_messages("c1")

    assert message.id == "m1"
    assert message.read is True
    assert message.attachment is None


@pytest.mark.asyncio
async def test_send_message_posts_camel_case_body():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={
            "data": {
                "message": {
                    "_id": "m9",
                    "conversation": "c1",
                    "sender": "alice",
                    "attachment": {"url": "https://img.test/a.png", "type": "image"},
                    "createdAt": "2026-01-01T12:00:00Z",
                    "clientMsgId": "cm-1",
                },
            },
        })

    async with make_client(handler) as client:
        message = await client.send_message(
            "c1",
            content=None,
            attachment=Attachment(url="https://img.test/a.png"),
            client_msg_id="cm-1",
        )

    assert bodies == [{"attachment": {"url": "https://img.test/a.png", "type": "image"}, "clientMsgId": "cm-1"}]
    assert message.id == "m9"
    assert message.client_msg_id == "cm-1"
    assert message.attachment.url == "https://img.test/a.png"


@pytest.mark.asyncio
@pytest.mark.parametrize(("status", "retryable"), [(401, False), (404, False), (503, True)])
async def test_http_errors_map_to_api_error(status, retryable):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"message": "nope"})

    async with make_client(handler) as client:
        with pytest.raises(ApiError) as exc_info:
            await client.list_conversations()

    assert exc_info.value.status_code == status
    assert exc_info.value.retryable is retryable


@pytest.mark.asyncio
async def test_timeout_maps_to_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with make_client(handler) as client:
        with pytest.raises(TransportError) as exc_info:
            await client.list_messages("c1")

    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_upload_sends_image_field(tmp_path):
    image = tmp_path / "bike.png"
    image.write_bytes(b"\x89PNG fake")
    uploads: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/upload"
        uploads.append(request.content)
        return httpx.Response(200, json={"url": "https://img.test/bike.png"})

    async with make_client(handler) as client:
        attachment = await client.upload_attachment(image)

    assert attachment.url == "https://img.test/bike.png"
    assert b'name="image"; filename="bike.png"' in uploads[0]


@pytest.mark.asyncio
async def test_upload_rejects_non_images_without_request(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("not an image")

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with make_client(handler) as client:
        with pytest.raises(ValidationError, match="image"):
            await client.upload_attachment(notes)
        with pytest.raises(ValidationError):
            await client.upload_attachment(tmp_path / "missing.png")


@pytest.mark.asyncio
async def test_upload_rejects_oversized_images(tmp_path):
    image = tmp_path / "huge.jpg"
    image.write_bytes(b"x" * 2048)

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with make_client(handler, upload_max_bytes=1024) as client:
        with pytest.raises(ValidationError):
            await client.upload_attachment(image)


@pytest.mark.asyncio
async def test_upload_server_failure_is_retryable_upload_error(tmp_path):
    image = tmp_path / "bike.jpg"
    image.write_bytes(b"jpeg")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    async with make_client(handler) as client:
        with pytest.raises(UploadError) as exc_info:
            await client.upload_attachment(image)

    assert exc_info.value.retryable is True
