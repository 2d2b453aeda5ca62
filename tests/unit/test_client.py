from __future__ import annotations

import httpx
import pytest

from swapride_chat.client import open_chat
from swapride_chat.domain.value_objects.enums import ConnectionStatus
from tests.conftest import FakeServer


def backend(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/chat/conversations"):
        return httpx.Response(200, json={"data": {"conversations": [
            {"_id": "c1", "participants": ["alice", "bob"], "unreadCount": 1},
        ]}})
    return httpx.Response(200, json={"data": {"messages": []}})


@pytest.mark.asyncio
async def test_open_chat_connects_and_loads_directory():
    server = FakeServer()

    async with open_chat(
        "alice",
        token="tok",
        connect_factory=server.factory,
        transport=httpx.MockTransport(backend),
    ) as session:
        assert session.connection.connected is True
        assert [c.id for c in session.directory.conversations] == ["c1"]
        assert session.directory.total_unread == 1

        await session.select("c1")
        assert server.current.sent[0] == {"type": "joinConversation", "data": {"conversationId": "c1"}}

    assert server.urls[0].endswith("?token=tok")
    assert session.connection.status == ConnectionStatus.CLOSED
    assert server.current.closed is True


@pytest.mark.asyncio
async def test_open_chat_yields_session_when_socket_is_down():
    server = FakeServer()
    server.failures.extend([OSError("refused")] * 20)

    async with open_chat(
        "alice",
        token="tok",
        connect_timeout=0.05,
        connect_factory=server.factory,
        transport=httpx.MockTransport(backend),
    ) as session:
        assert session.connection.connected is False
        assert session.composer.can_send is False
        assert len(session.directory.conversations) == 1
