"""
MongoDB database connection
Using motor (async MongoDB driver)
"""
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from placement_backup.config import settings
from typing import Optional

logger = logging.getLogger(__name__)

# Global database client
mongodb_client: Optional[AsyncIOMotorClient] = None
database = None

async def connect_db():
    """Connect to MongoDB"""
    global mongodb_client, database

    try:
        mongodb_client = AsyncIOMotorClient(settings.MONGODB_URL)
        database = mongodb_client[settings.DATABASE_NAME]

        # Test connection
        await mongodb_client.admin.command('ping')
        logger.info(f"Connected to MongoDB: {settings.DATABASE_NAME}")

    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        raise

async def close_db():
    """Close MongoDB connection"""
    global mongodb_client

    if mongodb_client:
        mongodb_client.close()
        logger.info("MongoDB connection closed")

async def get_database():
    """Get database instance"""
    return database
