"""Entry point: build a ready-to-use chat session from settings."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from swapride_chat.config import settings
from swapride_chat.infrastructure.http.api_client import ChatApiClient
from swapride_chat.infrastructure.ws.connection import ConnectFactory, ConnectionManager
from swapride_chat.services.session import ChatSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_chat(
    viewer_id: str,
    *,
    token: str | None = None,
    connect_timeout: float = 10.0,
    connect_factory: ConnectFactory | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[ChatSession]:
    """Connect, load the conversation list and yield the session.

    The session starts even if the socket is not up within
    ``connect_timeout``; sending stays disabled until it is.
    """
    token = token if token is not None else settings.AUTH_TOKEN
    api = ChatApiClient(token=token, transport=transport)
    connection = ConnectionManager(token=token, connect_factory=connect_factory)
    session = ChatSession(connection, api, viewer_id=viewer_id)
    try:
        await session.start()
        await connection.connect()
        if not await connection.wait_connected(connect_timeout):
            logger.warning("Chat connection not established within %.1fs", connect_timeout)
        yield session
    finally:
        await session.close()
        await connection.disconnect()
        await api.close()
