"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.config import settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB."""
        self.client = AsyncIOMotorClient(settings.mongodb_url)
        self.db = self.client[settings.mongodb_db_name]
        logger.info("Connected to MongoDB: %s", settings.mongodb_db_name)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client is not None:
            self.client.close()
            logger.info("Disconnected from MongoDB")


# Global database instance
database = Database()


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    if database.db is None:
        raise RuntimeError("Database not connected")
    return database.db


async def ensure_indexes(db) -> None:
    """
    Create the indexes the services rely on.

    The unique compound indexes back the create-if-not-exists paths
    (enrollment, module progress) against concurrent duplicate inserts.

    Args:
        db: Motor database handle
    """
    await db["users"].create_index("email", unique=True)
    await db["courses"].create_index("slug", unique=True)
    await db["courses"].create_index([("created_at", DESCENDING)])
    await db["enrollments"].create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING)], unique=True,
    )
    await db["course_progress"].create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING), ("module_id", ASCENDING)],
        unique=True,
    )
    await db["goals"].create_index([("owner_id", ASCENDING), ("created_at", DESCENDING)])
    await db["goal_strategies"].create_index("goal_id")
    await db["goal_comments"].create_index([("goal_id", ASCENDING), ("created_at", DESCENDING)])
    await db["content_items"].create_index([("author_id", ASCENDING), ("created_at", DESCENDING)])
    await db["content_changes"].create_index([("content_id", ASCENDING), ("version", ASCENDING)])
    logger.info("Database indexes ensured")
