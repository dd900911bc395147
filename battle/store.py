"""
Redis key-value store for the ledger, totals and classification cache.

Provides:
- Async Redis client with connection pooling
- Automatic JSON serialization/deserialization
- TTL-based expiration
- Atomic create-if-absent (SET NX)
- Hash reads and atomic float increments
- Transactional pipelines (MULTI/EXEC) for batched writes

Unlike a cache, the store is the system of record: every Redis failure is
raised as StoreError so the webhook sender retries later.

Usage:
    from battle.store import RedisStore

    store = RedisStore(config.store.url)
    await store.connect()

    created = await store.set_if_absent("battle:order:1001", {"orderId": "1001"})

    async with store.pipeline() as pipe:
        pipe.hincrbyfloat("battle:totals", "sweet", 20.0)
        pipe.hset("battle:totals", mapping={"lastUpdated": now})
"""
import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from battle.exceptions import StoreError
from battle.observability import get_logger, Timer

logger = get_logger(__name__)


@dataclass
class StoreStats:
    """Store command statistics for monitoring."""

    reads: int = 0
    writes: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {"reads": self.reads, "writes": self.writes, "errors": self.errors}

    def reset(self) -> None:
        self.reads = 0
        self.writes = 0
        self.errors = 0


def _encode(value: Any) -> str:
    return json.dumps(value, default=str)


def _decode(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        # Written by another tool as a bare string (e.g. an access token)
        return raw


class RedisStore:
    """
    Async Redis store.

    Pass ``client`` to use an already-built client (tests use fakeredis);
    otherwise one is created from ``url`` on connect().
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        socket_timeout: float = 5.0,
        client: Optional[redis.Redis] = None,
    ):
        self.url = url
        self.socket_timeout = socket_timeout
        self._client = client
        self._connected = False
        self._stats = StoreStats()
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """
        Connect to Redis and verify the connection.

        Raises:
            StoreError: If Redis does not answer PING
        """
        async with self._lock:
            if self._client is None:
                self._client = redis.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=self.socket_timeout,
                    socket_connect_timeout=self.socket_timeout,
                )
            try:
                await self._client.ping()
            except RedisError as e:
                self._connected = False
                raise StoreError("Redis connection failed", str(e)) from e
            self._connected = True
            logger.info(f"Redis connected: {self.url}")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._connected = False
            logger.info("Redis disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if Redis is connected."""
        return self._connected and self._client is not None

    def _require_client(self) -> redis.Redis:
        if not self.is_connected:
            raise StoreError("Store is not connected")
        return self._client

    def _fail(self, operation: str, key: Optional[str], error: Exception) -> StoreError:
        self._stats.errors += 1
        logger.error(
            f"Store {operation} failed",
            extra={"key": key, "error": str(error)}
        )
        return StoreError(f"Store {operation} failed", str(error), key=key)

    async def ping(self) -> bool:
        """Round-trip check used by the health endpoint."""
        try:
            return bool(await self._require_client().ping())
        except RedisError as e:
            raise self._fail("ping", None, e) from e

    # ═══════════════════════════════════════════════════════════════════════════
    # KEY/VALUE
    # ═══════════════════════════════════════════════════════════════════════════

    async def get(self, key: str) -> Any:
        """
        Get a JSON value.

        Returns:
            Decoded value, or None if the key does not exist
        """
        client = self._require_client()
        try:
            with Timer("store_get"):
                raw = await client.get(key)
        except RedisError as e:
            raise self._fail("get", key, e) from e

        self._stats.reads += 1
        return _decode(raw)

    async def exists(self, key: str) -> bool:
        client = self._require_client()
        try:
            count = await client.exists(key)
        except RedisError as e:
            raise self._fail("exists", key, e) from e

        self._stats.reads += 1
        return count > 0

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Set a JSON value.

        Args:
            key: Key
            value: Value to store (JSON serialized)
            ttl: Optional expiry in seconds; None keeps the key forever
        """
        client = self._require_client()
        try:
            with Timer("store_set"):
                await client.set(key, _encode(value), ex=ttl)
        except RedisError as e:
            raise self._fail("set", key, e) from e

        self._stats.writes += 1

    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Atomically create a key only if it does not exist (SET NX).

        Returns:
            True if this call created the key, False if it already existed
        """
        client = self._require_client()
        try:
            with Timer("store_set_nx"):
                created = await client.set(key, _encode(value), ex=ttl, nx=True)
        except RedisError as e:
            raise self._fail("set_if_absent", key, e) from e

        self._stats.writes += 1
        return bool(created)

    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """
        client = self._require_client()
        try:
            removed = await client.delete(key)
        except RedisError as e:
            raise self._fail("delete", key, e) from e

        self._stats.writes += 1
        return removed > 0

    # ═══════════════════════════════════════════════════════════════════════════
    # HASHES
    # ═══════════════════════════════════════════════════════════════════════════

    async def hgetall(self, key: str) -> Dict[str, str]:
        """Read all fields of a hash; empty dict if absent."""
        client = self._require_client()
        try:
            data = await client.hgetall(key)
        except RedisError as e:
            raise self._fail("hgetall", key, e) from e

        self._stats.reads += 1
        return data or {}

    async def hincrbyfloat(self, key: str, field: str, delta: float) -> float:
        """Atomically add ``delta`` to a hash field and return the new value."""
        client = self._require_client()
        try:
            value = await client.hincrbyfloat(key, field, delta)
        except RedisError as e:
            raise self._fail("hincrbyfloat", key, e) from e

        self._stats.writes += 1
        return float(value)

    # ═══════════════════════════════════════════════════════════════════════════
    # BATCHES
    # ═══════════════════════════════════════════════════════════════════════════

    @asynccontextmanager
    async def pipeline(self) -> AsyncIterator[Any]:
        """
        Collect commands and submit them together in one MULTI/EXEC.

        Commands queued inside the block run when it exits normally; if the
        block raises, nothing is sent.

        Raises:
            StoreError: If the transaction fails
        """
        client = self._require_client()
        async with client.pipeline(transaction=True) as pipe:
            yield pipe
            try:
                with Timer("store_pipeline", logger):
                    await pipe.execute()
            except RedisError as e:
                raise self._fail("pipeline", None, e) from e

        self._stats.writes += 1

    def get_stats(self) -> dict:
        """Get store statistics."""
        return {
            "connected": self.is_connected,
            "url": self.url if self.is_connected else None,
            **self._stats.to_dict(),
        }
