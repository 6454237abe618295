import os
import asyncio
import logging

import redis.asyncio as aioredis
from prometheus_client import start_http_server

logger = logging.getLogger(__name__)

REDIS = None


def init_metrics(port: int = None):
    """Initialize Prometheus metrics server"""
    port = port or int(os.getenv('METRICS_PORT', '8001'))
    start_http_server(port)
    logger.info(f"Prometheus metrics server started on port {port}")


async def redis_startup():
    """Connect to Redis with retries; the app keeps running without it"""
    global REDIS

    redis_url = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    max_retries = 3
    retry_delay = 3  # seconds

    for attempt in range(max_retries):
        try:
            logger.info(f"Attempting to connect to Redis: {redis_url} (attempt {attempt + 1}/{max_retries})")

            REDIS = aioredis.from_url(
                redis_url,
                decode_responses=False,
                max_connections=20,
                retry_on_timeout=True,
                health_check_interval=30,
                socket_connect_timeout=5,
                socket_timeout=5
            )

            await REDIS.ping()

            logger.info("Redis connected successfully")
            break

        except (aioredis.RedisError, OSError) as e:
            logger.warning(f'Redis startup attempt {attempt + 1} failed: {e}')
            if REDIS:
                await REDIS.aclose()
                REDIS = None

            if attempt < max_retries - 1:
                logger.info(f"Retrying Redis connection in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
            else:
                logger.error("Failed to connect to Redis after all retries")


async def shutdown_connections():
    """Gracefully shutdown all connections"""
    global REDIS
    logger.info("Shutting down connections...")

    if REDIS:
        try:
            await REDIS.aclose()
            logger.info("Redis connection closed")
        except aioredis.RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")
        REDIS = None
