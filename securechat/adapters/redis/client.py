"""Redis Adapter - Connection and utilities."""
import redis.asyncio as redis
from typing import Optional

from securechat.core.config import settings

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis connection from settings.REDIS_URL."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


async def close_redis():
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def key_store_key(namespace: str) -> str:
    """Hash key holding one key store namespace."""
    return f"securechat:keystore:{namespace}"
