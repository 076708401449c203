"""
MongoDB connection holder
One Motor client per process, opened and closed by the app lifespan
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from casestudy.core.config import settings
import logging

logger = logging.getLogger(__name__)

class MongoDB:
    client: AsyncIOMotorClient = None
    
mongodb = MongoDB()

async def connect_to_mongo():
    """Open the client and ping the server so startup fails fast"""
    try:
        mongodb.client = AsyncIOMotorClient(
            settings.mongodb_url,
            serverSelectionTimeoutMS=settings.mongodb_timeout_ms
        )
        await mongodb.client.admin.command('ping')
        logger.info(f"✓ Connected to MongoDB at {settings.mongodb_url} (db: {settings.database_name})")
    except Exception as e:
        logger.error(f"✗ Failed to connect to MongoDB: {e}")
        raise

async def ensure_indexes():
    """Create the lookup indexes used by the session and response queries"""
    db = get_database()
    await db["sessions"].create_index("sessionCode")
    await db["sessions"].create_index("active")
    await db["students"].create_index("studentId", unique=True)
    await db["responses"].create_index([("studentId", 1), ("sessionId", 1)])
    await db["live_sessions"].create_index("sessionId", unique=True)
    logger.info("✓ MongoDB indexes ensured")
    
async def close_mongo_connection():
    if mongodb.client:
        mongodb.client.close()
        mongodb.client = None
        logger.info("✓ Closed MongoDB connection")

def get_database() -> AsyncIOMotorDatabase:
    if mongodb.client is None:
        raise RuntimeError("MongoDB is not connected")
    return mongodb.client[settings.database_name]
