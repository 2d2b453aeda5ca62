"""Seed development data: a few users with conversations and messages."""
from __future__ import annotations

import logging

from swapride_chat.devserver.store import InMemoryChatStore

logger = logging.getLogger(__name__)

DEMO_CONVERSATIONS: dict[tuple[str, str], list[tuple[str, str]]] = {
    ("alice", "bob"): [
        ("alice", "Hi! Is the 2014 Civic still available?"),
        ("bob", "It is. Are you looking to buy or swap?"),
        ("alice", "Swap, I have a set of alloy wheels plus cash."),
    ],
    ("alice", "carol"): [
        ("carol", "Would you take an offer on the roof rack?"),
    ],
}


def seed_demo_data(store: InMemoryChatStore) -> None:
    for (first, second), lines in DEMO_CONVERSATIONS.items():
        conversation = store.start_conversation(first, second)
        for sender_id, content in lines:
            store.create_message(conversation.id, sender_id, content=content)
        logger.info("Seeded conversation %s with %d messages", conversation.id, len(lines))
