"""
Redis-backed error store.

Each record is a hash at ``error:{error_id}``; a sorted set scored by the
last-seen timestamp indexes records for listing and pruning. Upserts run
as WATCH/MULTI transactions and are retried when another writer touches
the same record first.

Includes connection pooling and retry logic for resilience.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError, WatchError

from error_tracker.exceptions import StoreConnectionError
from error_tracker.models.error import ErrorRecord
from error_tracker.services.error_store import ErrorStore


logger = logging.getLogger(__name__)


class RedisErrorStore(ErrorStore):
    """
    Error store keeping records in Redis hashes.
    """

    # Redis key prefixes
    ERROR_KEY_PREFIX = "error:{error_id}"
    TIMESTAMP_INDEX_KEY = "errors:by_timestamp"

    # Hash fields that are absent when the value is None
    _NULLABLE_FIELDS = ("name", "stack", "guild_id", "user_id", "command", "meta")

    def __init__(
        self,
        redis_url: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        connection_timeout: int = 5
    ):
        """
        Initialize the Redis error store.

        Args:
            redis_url: Redis connection URL. If None, will load from settings.
            max_retries: Maximum number of retry attempts for transient errors
            retry_delay: Base delay between retries (exponential backoff)
            connection_timeout: Connection timeout in seconds
        """
        self._redis_url = redis_url
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._connection_timeout = connection_timeout

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool.

        Should be called during application startup.

        Raises:
            StoreConnectionError: If connection fails
        """
        try:
            if not self._redis_url:
                from error_tracker.config import settings
                self._redis_url = settings.redis_url

            self._pool = ConnectionPool.from_url(
                self._redis_url,
                max_connections=10,
                decode_responses=True,
                socket_timeout=self._connection_timeout,
                socket_connect_timeout=self._connection_timeout
            )

            self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()

            logger.info("Redis connection pool initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis connection pool: {e}")
            raise StoreConnectionError(f"Failed to connect to Redis: {e}")

    async def close(self) -> None:
        """
        Close Redis connection pool.

        Should be called during application shutdown.
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        logger.info("Redis connection pool closed")

    @asynccontextmanager
    async def _get_client(self):
        """
        Get Redis client with connection check.

        Yields:
            redis.Redis: Redis client instance

        Raises:
            RuntimeError: If client not initialized
        """
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")

        yield self._client

    async def _retry_operation(self, operation, *args, **kwargs):
        """
        Execute Redis operation with retry logic.

        Args:
            operation: Async function to execute
            *args: Positional arguments for operation
            **kwargs: Keyword arguments for operation

        Returns:
            Operation result

        Raises:
            StoreConnectionError: If operation fails after all retries
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                return await operation(*args, **kwargs)

            except (ConnectionError, TimeoutError) as e:
                last_error = e
                if attempt < self._max_retries - 1:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Redis operation failed (attempt {attempt + 1}/{self._max_retries}), "
                        f"retrying in {delay}s: {e}"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Redis operation failed after {self._max_retries} attempts: {e}")

            except RedisError as e:
                # Non-transient errors, don't retry
                logger.error(f"Redis operation failed with non-transient error: {e}")
                raise

        raise StoreConnectionError(f"Redis operation failed after {self._max_retries} retries: {last_error}")

    def _error_key(self, error_id: str) -> str:
        """Get Redis key for an error record."""
        return self.ERROR_KEY_PREFIX.format(error_id=error_id)

    # ========== Store Operations ==========

    async def record_error(
        self,
        error_id: str,
        context: str,
        message: str,
        name: Optional[str] = None,
        stack: Optional[str] = None,
        meta: Any = None,
        guild_id: Optional[str] = None,
        user_id: Optional[str] = None,
        command: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        severity: Optional[str] = None,
    ) -> None:
        seen_at = self._as_utc(timestamp) if timestamp else self._now()
        meta_json = self._serialize_meta(meta)
        key = self._error_key(error_id)

        async def _upsert():
            async with self._get_client() as client:
                async with client.pipeline(transaction=True) as pipe:
                    while True:
                        try:
                            await pipe.watch(key)
                            exists = await pipe.exists(key)

                            pipe.multi()
                            if exists:
                                updates: Dict[str, str] = {
                                    "timestamp": seen_at.isoformat(),
                                    "context": context,
                                }
                                for field, value in (
                                    ("guild_id", guild_id),
                                    ("user_id", user_id),
                                    ("command", command),
                                ):
                                    if value is not None:
                                        updates[field] = value
                                if meta_json is not None:
                                    updates["meta"] = meta_json
                                else:
                                    pipe.hdel(key, "meta")
                                pipe.hset(key, mapping=updates)
                                pipe.hincrby(key, "occurrences", 1)
                            else:
                                pipe.hset(key, mapping=self._new_record_fields(
                                    error_id=error_id,
                                    timestamp=seen_at,
                                    severity=self._severity(severity),
                                    context=context,
                                    name=name,
                                    message=message,
                                    stack=stack,
                                    guild_id=guild_id,
                                    user_id=user_id,
                                    command=command,
                                    meta=meta_json,
                                ))
                            pipe.zadd(self.TIMESTAMP_INDEX_KEY, {error_id: seen_at.timestamp()})
                            await pipe.execute()
                            break

                        except WatchError:
                            logger.debug(f"Concurrent update on error {error_id}, retrying upsert")
                            continue

                logger.debug(f"Recorded error {error_id}")

        await self._retry_operation(_upsert)

    async def get_by_id(self, error_id: str) -> Optional[ErrorRecord]:
        async def _get():
            async with self._get_client() as client:
                fields = await client.hgetall(self._error_key(error_id))
                if not fields:
                    return None
                return self._hash_to_record(fields)

        return await self._retry_operation(_get)

    async def list_latest(self, limit: int = 10) -> List[ErrorRecord]:
        async def _list():
            async with self._get_client() as client:
                error_ids = await client.zrevrange(self.TIMESTAMP_INDEX_KEY, 0, max(limit, 1) - 1)
                if not error_ids or limit <= 0:
                    return []

                async with client.pipeline(transaction=False) as pipe:
                    for error_id in error_ids:
                        pipe.hgetall(self._error_key(error_id))
                    results = await pipe.execute()

                return [self._hash_to_record(fields) for fields in results if fields]

        return await self._retry_operation(_list)

    async def prune(self, days: int) -> int:
        cutoff = self._cutoff(days).timestamp()

        async def _prune():
            async with self._get_client() as client:
                stale = await client.zrangebyscore(
                    self.TIMESTAMP_INDEX_KEY,
                    min="-inf",
                    max=f"({cutoff}"
                )
                if not stale:
                    return 0

                async with client.pipeline(transaction=True) as pipe:
                    for error_id in stale:
                        pipe.delete(self._error_key(error_id))
                    pipe.zrem(self.TIMESTAMP_INDEX_KEY, *stale)
                    await pipe.execute()

                logger.info(f"Pruned {len(stale)} errors older than {days} days")
                return len(stale)

        return await self._retry_operation(_prune)

    def describe(self) -> str:
        return f"Redis ({self._redis_url or 'unconfigured'})"

    # ========== Serialization ==========

    def _new_record_fields(self, error_id: str, timestamp: datetime, **values: Any) -> Dict[str, str]:
        fields = {
            "id": error_id,
            "timestamp": timestamp.isoformat(),
            "occurrences": "1",
        }
        for field, value in values.items():
            if value is not None:
                fields[field] = str(value)
        return fields

    def _hash_to_record(self, fields: Dict[str, str]) -> ErrorRecord:
        values = {field: fields.get(field) for field in self._NULLABLE_FIELDS}
        values["meta"] = self._hydrate_meta(values["meta"])
        return ErrorRecord(
            id=fields["id"],
            timestamp=self._as_utc(datetime.fromisoformat(fields["timestamp"])),
            severity=fields.get("severity", "error"),
            context=fields["context"],
            message=fields.get("message", ""),
            occurrences=int(fields.get("occurrences", 1)),
            **values
        )
