"""Redis Store Implementations."""
import json
import logging
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from securechat.adapters.redis.client import get_redis, key_store_key
from securechat.domain.e2ee.ports import KeyValueStore
from securechat.errors import StorageError

logger = logging.getLogger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """One Redis hash per namespace; values are JSON-encoded hash fields."""

    def __init__(self, namespace: str = "key-store", client: Optional[Any] = None):
        self.namespace = namespace
        self._client = client

    async def _redis(self):
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        redis = await self._redis()
        try:
            raw = await redis.hget(key_store_key(self.namespace), key)
        except RedisError as e:
            logger.error(f"Redis key store read failed: {e}")
            raise StorageError(f"Key store read failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Key store value {self.namespace}/{key} is corrupt") from e

    async def put(self, key: str, value: Any) -> None:
        await self.put_many({key: value})

    async def put_many(self, entries: Dict[str, Any]) -> None:
        """Single HSET inside MULTI/EXEC."""
        try:
            mapping = {k: json.dumps(v) for k, v in entries.items()}
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not JSON-serializable: {e}") from e

        redis = await self._redis()
        try:
            pipeline = redis.pipeline(transaction=True)
            pipeline.hset(key_store_key(self.namespace), mapping=mapping)
            await pipeline.execute()
        except RedisError as e:
            logger.error(f"Redis key store write failed: {e}")
            raise StorageError(f"Key store write failed: {e}") from e

    async def clear(self) -> None:
        redis = await self._redis()
        try:
            await redis.delete(key_store_key(self.namespace))
        except RedisError as e:
            logger.error(f"Redis key store clear failed: {e}")
            raise StorageError(f"Key store clear failed: {e}") from e

    async def ping(self) -> bool:
        redis = await self._redis()
        try:
            return bool(await redis.ping())
        except RedisError as e:
            raise StorageError(f"Redis unreachable: {e}") from e
