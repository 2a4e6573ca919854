"""Append-only message store, partitioned by conversation.

Document schema::

    {
        "conversationId": "u1_u2",
        "timestamp": "2026-10-18T09:15:02.123Z",
        "senderId": "u1",
        "recipientId": "u2",
        "message": "hi",
        "read": false
    }

Documents are inserted once and never updated by the relay. The compound
``(conversationId, timestamp)`` index serves range reads of one conversation.
"""

from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from relay.errors import StorageError, StorageWriteError
from relay.models.messages import Message

logger = logging.getLogger(__name__)


class MessageStore:
    """Insert and range-read access to the message collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index(
            [("conversationId", ASCENDING), ("timestamp", ASCENDING)]
        )

    async def append(self, message: Message) -> None:
        """Persist ``message``; raises ``StorageWriteError`` if it did not land."""
        # insert_one adds ``_id`` to the dict it is given; hand it a fresh one.
        document = message.to_wire()
        try:
            await self._collection.insert_one(document)
        except PyMongoError as exc:
            raise StorageWriteError(
                f"Failed to persist message in conversation {message.conversation_id}"
            ) from exc
        logger.debug(
            "Persisted message %s -> %s (%s)",
            message.sender_id,
            message.recipient_id,
            message.conversation_id,
        )

    async def list_conversation(
        self,
        conversation_id: str,
        limit: int = 50,
        before: str | None = None,
    ) -> list[Message]:
        """Return up to ``limit`` messages, newest first, optionally older than ``before``."""
        query: dict = {"conversationId": conversation_id}
        if before:
            query["timestamp"] = {"$lt": before}

        cursor = (
            self._collection.find(query, {"_id": 0})
            .sort("timestamp", DESCENDING)
            .limit(limit)
        )
        try:
            return [Message.model_validate(doc) async for doc in cursor]
        except PyMongoError as exc:
            raise StorageError(
                f"Failed to read conversation {conversation_id}"
            ) from exc
