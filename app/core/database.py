from __future__ import annotations

import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

from app.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Process-wide MongoDB connection.

    Family documents live in ``families`` keyed by family code, member
    documents in ``users`` keyed by uid.  Always go through the
    module-level ``db`` instance::

        await db.connect()
        families = db.get_collection(CollectionNames.FAMILIES)
        await db.disconnect()
    """

    _instance: DatabaseManager | None = None
    _client: AsyncIOMotorClient | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def connect(self) -> None:
        self._client = AsyncIOMotorClient(
            settings.mongo_uri,
            maxPoolSize=settings.mongo_max_pool_size,
            serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        )
        await self._client.admin.command("ping")
        logger.info("Connected to MongoDB database %s.", settings.mongo_db)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        logger.info("Disconnected from MongoDB.")

    async def ping(self) -> bool:
        """``True`` when the server answers; never raises."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.warning("MongoDB ping failed: %s", exc)
            return False
        return True

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._client is None:
            raise RuntimeError("DatabaseManager is not connected. Call connect() first.")
        return self._client[settings.mongo_db]

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        return self.database[name]


db: DatabaseManager = DatabaseManager()
