from __future__ import annotations

import asyncio

import pytest

from swapride_chat.services.presence import TypingIndicator
from tests.conftest import OTHER_ID, VIEWER_ID

EXPIRY = 0.2


@pytest.fixture
def indicator():
    indicator = TypingIndicator(viewer_id=VIEWER_ID, expiry_seconds=EXPIRY)
    yield indicator
    indicator.close()


@pytest.mark.asyncio
async def test_typing_expires_without_refresh(indicator):
    indicator.on_typing_event(OTHER_ID, True)
    assert indicator.is_typing is True
    assert indicator.user_id == OTHER_ID

    await asyncio.sleep(EXPIRY * 2)

    assert indicator.is_typing is False
    assert indicator.user_id is None


@pytest.mark.asyncio
async def test_refresh_extends_the_window(indicator):
    indicator.on_typing_event(OTHER_ID, True)
    await asyncio.sleep(EXPIRY * 0.6)
    indicator.on_typing_event(OTHER_ID, True)
    await asyncio.sleep(EXPIRY * 0.6)

    assert indicator.is_typing is True

    await asyncio.sleep(EXPIRY)
    assert indicator.is_typing is False


@pytest.mark.asyncio
async def test_stop_signal_clears_immediately(indicator):
    changes: list[bool] = []
    indicator.subscribe(lambda: changes.append(indicator.is_typing))

    indicator.on_typing_event(OTHER_ID, True)
    indicator.on_typing_event(OTHER_ID, False)

    assert indicator.is_typing is False
    assert changes == [True, False]


@pytest.mark.asyncio
async def test_own_typing_is_ignored(indicator):
    indicator.on_typing_event(VIEWER_ID, True)

    assert indicator.is_typing is False


@pytest.mark.asyncio
async def test_reset_clears_state(indicator):
    indicator.on_typing_event(OTHER_ID, True)

    indicator.reset()

    assert indicator.is_typing is False
    await asyncio.sleep(EXPIRY * 1.5)
    assert indicator.is_typing is False
