"""
Dependency readiness script.

Waits for the moderation store database and Redis before starting the API or the retry worker.
"""

import asyncio
import sys
import time

from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from src.core.config import settings
from src.core.logging import configure_logging, get_logger

configure_logging()
logger = get_logger("wait_for_db")


async def _database_ready() -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    finally:
        await engine.dispose()


async def _redis_ready() -> None:
    client = Redis.from_url(settings.REDIS_URL)
    try:
        await client.ping()
    finally:
        await client.aclose()


async def wait_for_dependencies(max_retries: int = 30, retry_interval: int = 2) -> bool:
    """
    Wait until the database and Redis both answer.

    Args:
        max_retries: Maximum number of connection attempts
        retry_interval: Seconds to wait between attempts

    Returns:
        True if both connections succeeded, False otherwise
    """
    logger.info("Waiting for database and redis...")

    for attempt in range(1, max_retries + 1):
        try:
            await _database_ready()
            await _redis_ready()
            logger.info("Database and redis connections established")
            return True
        except Exception as e:
            if attempt == max_retries:
                logger.error(f"Could not reach dependencies after {max_retries} attempts: {e}")
                break
            logger.warning(f"Dependencies not ready yet ({attempt}/{max_retries}), retrying in {retry_interval}s: {e}")
            await asyncio.sleep(retry_interval)

    return False


if __name__ == "__main__":
    start_time = time.time()
    result = asyncio.run(wait_for_dependencies())
    elapsed = time.time() - start_time

    if result:
        logger.info(f"Dependencies ready after {elapsed:.2f} seconds")
        sys.exit(0)
    else:
        logger.error(f"Dependencies unavailable after {elapsed:.2f} seconds")
        sys.exit(1)
