"""
Redis connection used for publishing appointment change events
"""

import logging
from typing import Optional

import redis

from .config import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, REDIS_SSL, REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get or create the shared client; raises if Redis cannot be reached"""
    global redis_client

    if redis_client is None:
        if REDIS_URL:
            client = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=5)
            target = REDIS_URL.split("@")[-1]
        else:
            client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                password=REDIS_PASSWORD,
                db=REDIS_DB,
                ssl=REDIS_SSL,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            target = f"{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"

        try:
            client.ping()
        except redis.RedisError as e:
            logger.error(f"❌ Failed to connect to Redis at {target}: {e}")
            raise
        logger.info(f"📡 Redis connected at {target} for change notifications")
        redis_client = client

    return redis_client
