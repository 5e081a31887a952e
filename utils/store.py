"""
Key-value store access: the data-source side of the exporter.

KeyValueStore is the capability the pipeline depends on; RedisStore implements
it over redis.asyncio with a blocking connection pool and startup retries.
"""

import logging
from typing import Optional, Protocol

import redis.asyncio as redis
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from utils.config import ExportConfig

logger = logging.getLogger(__name__)

# TTL replies for persistent and missing keys
NO_EXPIRY = -1
KEY_MISSING = -2


class KeyValueStore(Protocol):
    """Operations the exporter needs from a key-value store."""

    async def scan_page(self, cursor: int, count: int) -> tuple[int, list[str]]:
        """Return (next_cursor, keys); a next_cursor of 0 means exhausted."""
        ...

    async def key_type(self, key: str) -> str: ...

    async def get_string(self, key: str) -> Optional[str]: ...

    async def get_list(self, key: str) -> list[str]: ...

    async def get_set(self, key: str) -> list[str]: ...

    async def get_sorted_set(self, key: str) -> list[tuple[str, float]]: ...

    async def get_hash(self, key: str) -> dict[str, str]: ...

    async def get_stream(self, key: str) -> list[tuple[str, dict[str, str]]]: ...

    async def ttl(self, key: str) -> int:
        """Remaining time to live in whole seconds, or a negative sentinel."""
        ...


class RedisStore:
    """Redis-backed KeyValueStore with connection pooling."""

    def __init__(self, config: ExportConfig) -> None:
        """Initialize store.

        Args:
            config: Run configuration (address, credentials, pool sizing, timeouts)
        """
        self.config = config
        self.client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Create the connection pool and verify the server answers PING.

        Raises:
            redis.RedisError: If the server cannot be reached after retries
        """
        if self.client is None:
            pool = redis.BlockingConnectionPool(
                host=self.config.host,
                port=self.config.port,
                db=self.config.redis_db,
                password=self.config.redis_password or None,
                max_connections=self.config.max_connections,
                timeout=self.config.pool_timeout,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.connect_timeout,
                decode_responses=True,
                encoding_errors="replace",
            )
            self.client = redis.Redis.from_pool(pool)

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
            stop=stop_after_attempt(self.config.connect_retries),
            wait=wait_exponential(multiplier=1, min=1, max=5),
            reraise=True,
        ):
            with attempt:
                response = await self.client.ping()

        logger.info("Successfully connected to Redis", extra={"response": response})

    def _require_client(self) -> redis.Redis:
        if self.client is None:
            raise RuntimeError("RedisStore is not connected")
        return self.client

    async def scan_page(self, cursor: int, count: int) -> tuple[int, list[str]]:
        next_cursor, keys = await self._require_client().scan(cursor=cursor, count=count)
        return int(next_cursor), list(keys)

    async def key_type(self, key: str) -> str:
        return await self._require_client().type(key)

    async def get_string(self, key: str) -> Optional[str]:
        return await self._require_client().get(key)

    async def get_list(self, key: str) -> list[str]:
        return await self._require_client().lrange(key, 0, -1)

    async def get_set(self, key: str) -> list[str]:
        return list(await self._require_client().smembers(key))

    async def get_sorted_set(self, key: str) -> list[tuple[str, float]]:
        pairs = await self._require_client().zrange(key, 0, -1, withscores=True)
        return [(member, float(score)) for member, score in pairs]

    async def get_hash(self, key: str) -> dict[str, str]:
        return dict(await self._require_client().hgetall(key))

    async def get_stream(self, key: str) -> list[tuple[str, dict[str, str]]]:
        entries = await self._require_client().xrange(key, "-", "+")
        return [(entry_id, dict(fields)) for entry_id, fields in entries]

    async def ttl(self, key: str) -> int:
        return int(await self._require_client().ttl(key))

    async def close(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
