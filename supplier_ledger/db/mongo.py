import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from supplier_ledger.core.config import settings

logger = logging.getLogger(__name__)

class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(
        settings.MONGODB_URL,
        tz_aware=True,
        serverSelectionTimeoutMS=int(settings.STORAGE_TIMEOUT_SECONDS * 1000),
    )
    mongodb.db = mongodb.client[settings.DATABASE_NAME]
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
        mongodb.client = None
        mongodb.db = None
        logger.info("Disconnected from MongoDB")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
