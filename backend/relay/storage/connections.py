"""Durable registry of live, authenticated connections.

Document schema::

    { "connectionId": "6f1c...", "userId": "4a7e..." }

One document per live session, keyed (unique index) on ``connectionId``.
The relay itself never reads this collection; it exists so other systems
can see who is currently connected.
"""

from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from relay.errors import StorageDeleteError, StorageWriteError
from relay.models.connections import ConnectionRecord

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Put/delete access to the connection collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("connectionId", unique=True)

    async def register(self, connection_id: str, user_id: str) -> None:
        """Upsert the record for ``connection_id``. Safe to repeat."""
        record = ConnectionRecord(connection_id=connection_id, user_id=user_id)
        try:
            await self._collection.update_one(
                {"connectionId": connection_id},
                {"$set": record.to_wire()},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StorageWriteError(
                f"Failed to register connection {connection_id}"
            ) from exc
        logger.debug("Registered connection %s for user %s", connection_id, user_id)

    async def deregister(self, connection_id: str) -> None:
        """Delete the record for ``connection_id``; a missing record is not an error."""
        try:
            result = await self._collection.delete_one({"connectionId": connection_id})
        except PyMongoError as exc:
            raise StorageDeleteError(
                f"Failed to delete connection {connection_id}"
            ) from exc
        if result.deleted_count == 0:
            logger.debug("Connection %s was not registered", connection_id)
