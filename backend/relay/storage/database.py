"""MongoDB connection lifecycle for the connection and message collections."""

from __future__ import annotations

import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

from relay.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Database:
    """Owns the Motor client and hands out the two relay collections.

    Lifecycle:
        database = Database()
        await database.initialize()   # call once at startup
        ...
        await database.close()        # call once at shutdown
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or default_settings
        self._client: AsyncIOMotorClient | None = None
        self._db: AsyncIOMotorDatabase | None = None
        self._initialized: bool = False

    async def initialize(self) -> None:
        """Connect and ping; raises if MongoDB is unreachable."""
        if self._initialized:
            logger.warning("Database already initialized - skipping")
            return

        logger.info("Connecting to MongoDB at %s", self._settings.mongodb_uri)
        self._client = AsyncIOMotorClient(
            self._settings.mongodb_uri,
            serverSelectionTimeoutMS=5_000,
        )
        self._db = self._client[self._settings.mongodb_database]
        await self._client.admin.command("ping")
        logger.info("MongoDB connection established")

        self._initialized = True

    async def close(self) -> None:
        """Release connections."""
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._db = None
        self._initialized = False

    async def ping(self) -> bool:
        if self._client is None:
            return False
        await self._client.admin.command("ping")
        return True

    # ------------------------------------------------------------------
    # Collections (guard against use before init)
    # ------------------------------------------------------------------

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._db

    @property
    def connections(self) -> AsyncIOMotorCollection:
        return self.db[self._settings.connection_table]

    @property
    def messages(self) -> AsyncIOMotorCollection:
        return self.db[self._settings.message_table]
