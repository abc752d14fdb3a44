"""
Shared Redis response cache backend.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from shared.errors import CacheBackendError
from shared.logging import get_logger
from .backend import CacheBackend, CacheStatus
from .policy import CachePolicy


# Redis bounds memory, not key count, so capacity is translated with an
# assumed average serialized document size.
AVERAGE_ENTRY_BYTES = 2048

# decode_responses=True surfaces a non-UTF-8 value as UnicodeDecodeError.
BACKEND_ERRORS = (RedisError, OSError, asyncio.TimeoutError, UnicodeDecodeError)


class RedisStore(CacheBackend):
    """Redis-backed store reached through a blocking connection pool.

    The Redis instance is assumed to be dedicated to this cache: capacity is
    applied as the server-wide ``maxmemory`` and ``invalidate_all`` flushes
    the whole database. Redis only offers fixed TTLs, so when retention is
    configured every read re-arms the entry's expiry inside the same
    MULTI/EXEC transaction, approximating sliding expiration.

    Callers block for up to ``pool_timeout`` seconds when all pooled
    connections are in use; an exhausted wait surfaces as CacheBackendError.
    """

    name = "redis"

    def __init__(
        self,
        host: str,
        policy: Optional[CachePolicy] = None,
        *,
        port: int = 6379,
        db: int = 0,
        pool_size: int = 10,
        pool_timeout: float = 5.0,
        socket_timeout: float = 5.0,
    ):
        super().__init__(policy)
        self.host = host
        self.port = port
        self.db = db
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.socket_timeout = socket_timeout
        self.logger = get_logger("repository.cache.redis")

        self._pool: Optional[redis.BlockingConnectionPool] = None
        self._redis: Optional[redis.Redis] = None

    @property
    def ready(self) -> bool:
        return self._redis is not None

    @property
    def ttl(self) -> Optional[int]:
        return self.policy.retention_seconds

    @property
    def max_memory(self) -> Optional[int]:
        if self.policy.max_entries is None:
            return None
        return self.policy.max_entries * AVERAGE_ENTRY_BYTES

    def _create_pool(self) -> redis.BlockingConnectionPool:
        return redis.BlockingConnectionPool(
            host=self.host,
            port=self.port,
            db=self.db,
            max_connections=self.pool_size,
            timeout=self.pool_timeout,
            socket_connect_timeout=self.socket_timeout,
            socket_timeout=self.socket_timeout,
            encoding="utf-8",
            decode_responses=True,
        )

    async def open(self) -> None:
        """Create the connection pool, verify the host and apply the policy."""
        pool = self._create_pool()
        client = redis.Redis(connection_pool=pool)
        try:
            await client.ping()
            await self._apply_policy(client)
        except BACKEND_ERRORS as exc:
            await pool.disconnect()
            raise CacheBackendError(
                self.name,
                "Unable to reach cache host",
                {"host": self.host, "port": self.port, "error": str(exc)},
            ) from exc

        self._pool = pool
        self._redis = client
        self.logger.info(
            "Redis cache connected",
            host=self.host,
            port=self.port,
            pool_size=self.pool_size,
            max_memory=self.max_memory,
            ttl=self.ttl,
        )

    async def _apply_policy(self, client: redis.Redis) -> None:
        # Managed Redis offerings often disable CONFIG; the cache still works
        # without server-side bounds.
        try:
            if self.max_memory is not None:
                await client.config_set("maxmemory", self.max_memory)
            if self.ttl is not None:
                await client.config_set("maxmemory-policy", "volatile-lru")
        except ResponseError as exc:
            self.logger.warning("Unable to apply Redis memory policy", error=str(exc))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
            self.logger.info("Redis cache disconnected")

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[redis.Redis]:
        """Yield the pooled client, translating Redis failures.

        Every command borrows a pooled connection and returns it when the
        command (or transaction) finishes, including on error.
        """
        if self._redis is None:
            raise CacheBackendError(self.name, "Connection pool not initialized")
        try:
            yield self._redis
        except BACKEND_ERRORS as exc:
            raise CacheBackendError(self.name, str(exc) or exc.__class__.__name__) from exc

    async def get(self, key: str) -> Optional[str]:
        async with self._client() as client:
            if self.ttl is None:
                return await client.get(key)

            async with client.pipeline(transaction=True) as pipeline:
                pipeline.get(key)
                pipeline.expire(key, self.ttl)
                value, _ = await pipeline.execute()
            return value

    async def put(self, key: str, value: str) -> None:
        async with self._client() as client:
            if self.ttl is None:
                await client.set(key, value)
            else:
                await client.set(key, value, ex=self.ttl)

    async def invalidate_all(self) -> None:
        async with self._client() as client:
            await client.flushdb()
        self.logger.info("Redis cache flushed", host=self.host, db=self.db)

    async def status(self) -> CacheStatus:
        async with self._client() as client:
            memory = await client.info("memory")
            entries = await client.dbsize()
        return CacheStatus(entries=int(entries), size=parse_used_memory(memory))


def parse_used_memory(report) -> int:
    """Extract ``used_memory`` from an INFO memory reply (parsed or raw)."""
    if isinstance(report, dict):
        return int(report.get("used_memory", 0))
    for line in str(report).splitlines():
        name, _, value = line.partition(":")
        if name.strip() == "used_memory":
            return int(value.strip())
    return 0
