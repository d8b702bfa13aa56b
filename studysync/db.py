# studysync/db.py
import asyncio
import logging
import os
import time
from typing import Optional

from beanie import init_beanie
from pymongo import AsyncMongoClient

from .config import settings
from .models.user import User
from .models.resource import Resource
from .models.study_plan import StudyPlan
from .models.instance import StudyPlanInstance
from .models.user_progress import UserProgress
from .models.review import Review

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [
    User,
    Resource,
    StudyPlan,
    StudyPlanInstance,
    UserProgress,
    Review,
]

# Globals (one client + one beanie-init flag per process)
_global_client: Optional[AsyncMongoClient] = None
_beanie_initialized = False
_beanie_lock = asyncio.Lock()

# Environment variable to track if we're in a serverless environment
_is_serverless = (
    os.environ.get("VERCEL") == "1"
    or os.environ.get("AWS_LAMBDA_FUNCTION_NAME") is not None
)


def _make_client() -> AsyncMongoClient:
    """Create a client with short timeouts; every request is one round trip"""
    return AsyncMongoClient(
        settings.MONGO_URI,
        tz_aware=True,
        serverSelectionTimeoutMS=3000,
        connectTimeoutMS=3000,
        socketTimeoutMS=10000,
        maxPoolSize=5 if _is_serverless else 10,
        minPoolSize=1 if _is_serverless else 0,
        maxIdleTimeMS=30000,
        appname="studysync",
        retryWrites=True,
        retryReads=True,
    )


async def get_db_client() -> AsyncMongoClient:
    """Return the process-wide client, reconnecting if the cached one is unhealthy"""
    global _global_client

    if _global_client is not None:
        try:
            await _global_client.admin.command("ping")
            return _global_client
        except Exception as e:
            logger.warning(f"Existing DB connection unhealthy: {str(e)}")

    try:
        _global_client = _make_client()
        await _global_client.admin.command("ping")
        logger.info("New DB connection established")
        return _global_client
    except Exception as e:
        logger.error(f"Failed to establish DB connection: {str(e)}")
        raise


async def init_beanie_if_needed(database=None) -> None:
    """
    Initialize Beanie once per process.

    ``database`` lets callers (tests, scripts) bind the models to an
    already-open database instead of the configured one.
    """
    global _beanie_initialized

    # Fast path - already initialized
    if _beanie_initialized:
        return

    async with _beanie_lock:
        # Double-check after acquiring lock
        if _beanie_initialized:
            return

        start_time = time.time()
        if database is None:
            client = await get_db_client()
            database = client.get_database(settings.MONGO_DB_NAME)

        await init_beanie(
            database=database,
            document_models=DOCUMENT_MODELS,
            allow_index_dropping=False,
        )

        _beanie_initialized = True
        elapsed = time.time() - start_time
        logger.info(f"Beanie models initialized in {elapsed:.2f}s")


async def init_db() -> None:
    await init_beanie_if_needed()


async def close_client() -> None:
    """Close and drop the process-global client (useful during cleanup/tests)"""
    global _global_client, _beanie_initialized
    if _global_client is not None:
        await _global_client.close()
    _global_client = None
    _beanie_initialized = False
