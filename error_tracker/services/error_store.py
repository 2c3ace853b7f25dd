"""
Error record store.

Every backend keeps exactly one record per error id. The first capture
inserts it with ``occurrences = 1``; later captures of the same id bump the
counter and refresh the mutable context fields:

- ``timestamp`` moves to the latest capture
- ``context`` and ``meta`` are overwritten
- ``guild_id``, ``user_id`` and ``command`` are overwritten only by non-null values
- ``name``, ``message``, ``stack`` and ``severity`` keep their first values

Backends must make that read-modify-write atomic per id.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from error_tracker.models.error import ErrorRecord, Severity


logger = logging.getLogger(__name__)


class ErrorStore(ABC):
    """Interface shared by all error store backends."""

    async def initialize(self) -> None:
        """Open connections; called during application startup."""
        return None

    async def close(self) -> None:
        """Release connections; called during application shutdown."""
        return None

    @abstractmethod
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
        """Insert a record or count another occurrence of an existing one."""

    @abstractmethod
    async def get_by_id(self, error_id: str) -> Optional[ErrorRecord]:
        """Return the record for ``error_id``, or None when absent."""

    @abstractmethod
    async def list_latest(self, limit: int = 10) -> List[ErrorRecord]:
        """Return up to ``limit`` records, newest first."""

    @abstractmethod
    async def prune(self, days: int) -> int:
        """Delete records last seen more than ``days`` ago; return how many."""

    def describe(self) -> str:
        """Short human-readable description of the backend."""
        return type(self).__name__

    # ========== Shared helpers ==========

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @classmethod
    def _cutoff(cls, days: int) -> datetime:
        return cls._now() - timedelta(days=days)

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @staticmethod
    def _severity(severity: Optional[str]) -> str:
        if severity is None:
            return Severity.ERROR.value
        if isinstance(severity, Severity):
            return severity.value
        return str(severity)

    @staticmethod
    def _serialize_meta(meta: Any) -> Optional[str]:
        """Serialize metadata to JSON text; strings are stored as-is."""
        if meta is None:
            return None
        if isinstance(meta, str):
            return meta
        if isinstance(meta, BaseModel):
            meta = meta.model_dump(exclude_none=True)
        return json.dumps(meta, default=str)

    @staticmethod
    def _hydrate_meta(raw: Optional[str]) -> Any:
        """Parse stored metadata, falling back to the raw string."""
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (ValueError, TypeError):
            return raw


class InMemoryErrorStore(ErrorStore):
    """
    Process-local store backed by a dict.

    Used in tests and when no persistent backend is configured but
    deduplication within the process is still wanted.

    One lock is kept per id ever recorded, so the lock table grows with
    the number of distinct ids until ``prune`` drops the stale ones.
    """

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, error_id: str) -> asyncio.Lock:
        lock = self._locks.get(error_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[error_id] = lock
        return lock

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

        async with self._lock_for(error_id):
            existing = self._rows.get(error_id)
            if existing:
                existing["timestamp"] = seen_at
                existing["occurrences"] += 1
                existing["meta"] = meta_json
                existing["context"] = context
                if guild_id is not None:
                    existing["guild_id"] = guild_id
                if user_id is not None:
                    existing["user_id"] = user_id
                if command is not None:
                    existing["command"] = command
                return

            self._rows[error_id] = {
                "id": error_id,
                "timestamp": seen_at,
                "severity": self._severity(severity),
                "context": context,
                "name": name,
                "message": message,
                "stack": stack,
                "guild_id": guild_id,
                "user_id": user_id,
                "command": command,
                "meta": meta_json,
                "occurrences": 1,
            }

    async def get_by_id(self, error_id: str) -> Optional[ErrorRecord]:
        row = self._rows.get(error_id)
        if not row:
            return None
        return self._hydrate(row)

    async def list_latest(self, limit: int = 10) -> List[ErrorRecord]:
        rows = sorted(self._rows.values(), key=lambda row: row["timestamp"], reverse=True)
        return [self._hydrate(row) for row in rows[:limit]]

    async def prune(self, days: int) -> int:
        cutoff = self._cutoff(days)
        stale = [error_id for error_id, row in self._rows.items() if row["timestamp"] < cutoff]
        for error_id in stale:
            del self._rows[error_id]
            self._locks.pop(error_id, None)
        return len(stale)

    def describe(self) -> str:
        return f"In-memory ({len(self._rows)} records)"

    def _hydrate(self, row: Dict[str, Any]) -> ErrorRecord:
        return ErrorRecord(**{**row, "meta": self._hydrate_meta(row["meta"])})


def create_error_store(config: Any = None) -> Optional[ErrorStore]:
    """
    Build the configured error store.

    ``store_backend`` selects the backend explicitly; when unset it is
    inferred from ``database_url`` then ``redis_url``. Returns None when
    persistence is disabled, in which case captures are only logged.

    Args:
        config: Settings object. If None, the global settings are used.

    Raises:
        ValueError: If the selected backend is missing its connection URL
    """
    if config is None:
        from error_tracker.config import settings as config

    if not config.db_enabled:
        logger.info("Database disabled; error records will not be persisted.")
        return None

    backend = (config.store_backend or "").strip().lower()
    if not backend:
        if config.database_url:
            backend = "mysql"
        elif config.redis_url:
            backend = "redis"
        else:
            backend = "none"

    if backend == "none":
        logger.info("No error store configured; error records will not be persisted.")
        return None

    if backend == "memory":
        return InMemoryErrorStore()

    if backend == "mysql":
        if not config.database_url:
            raise ValueError("STORE_BACKEND=mysql requires DATABASE_URL")
        from error_tracker.services.mysql_store import MySQLErrorStore
        return MySQLErrorStore(database_url=config.database_url)

    if backend == "redis":
        if not config.redis_url:
            raise ValueError("STORE_BACKEND=redis requires REDIS_URL")
        from error_tracker.services.redis_store import RedisErrorStore
        return RedisErrorStore(redis_url=config.redis_url)

    raise ValueError(f"Unknown store backend: {backend}")
