"""Durable record of which items were already handled.

Layout (Redis):
    key    {namespace}:{user_id}          hash
    field  item id
    value  JSON {status, action?, timestamp}
    TTL    retention window in days, refreshed on every write

Only ids and status metadata are stored, never item content.
"""

from typing import Dict, Any, Optional, Set
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
import asyncio
import time

import redis.asyncio as redis
from redis.exceptions import RedisError
from pydantic import ValidationError
import structlog

from briefing.domain.errors import PersistenceError
from briefing.domain.models.briefing_state import ItemStatus, PersistedRecord

logger = structlog.get_logger(__name__)

DEFAULT_NAMESPACE = "nexus:briefed"
DEFAULT_TTL_DAYS = 7


class BriefedItemStore(ABC):
    """Hash store of item id -> PersistedRecord, keyed by user"""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE, ttl_days: int = DEFAULT_TTL_DAYS):
        self.namespace = namespace
        self.ttl_seconds = ttl_days * 24 * 60 * 60

    def key(self, user_id: str) -> str:
        return f"{self.namespace}:{user_id}"

    @abstractmethod
    async def write(self, user_id: str, item_id: str, record: PersistedRecord) -> None:
        """Write one record; must not raise"""
        pass

    @abstractmethod
    async def write_batch(self, user_id: str, records: Dict[str, PersistedRecord]) -> None:
        """Write many records at once; must not raise"""
        pass

    @abstractmethod
    async def get_all(self, user_id: str) -> Dict[str, PersistedRecord]:
        """Get every live record for a user"""
        pass

    async def get_handled_ids(self, user_id: str) -> Set[str]:
        """Get ids of items handled in any way"""

        return set((await self.get_all(user_id)).keys())

    async def get_actioned_ids(self, user_id: str) -> Set[str]:
        """Get ids of items the user acted on"""

        records = await self.get_all(user_id)
        return {
            item_id for item_id, record in records.items()
            if record.status == ItemStatus.ACTIONED
        }

    async def close(self) -> None:
        pass


class InMemoryBriefedItemStore(BriefedItemStore):
    """In-process store with the same retention semantics"""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE, ttl_days: int = DEFAULT_TTL_DAYS):
        super().__init__(namespace, ttl_days)
        self.hashes: Dict[str, Dict[str, Any]] = {}
        self.write_count = 0
        self._lock = asyncio.Lock()

    def _touch(self, key: str) -> Dict[str, str]:
        entry = self.hashes.setdefault(key, {"fields": {}, "expires_at": None})
        entry["expires_at"] = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        return entry["fields"]

    async def write(self, user_id: str, item_id: str, record: PersistedRecord) -> None:
        async with self._lock:
            self._touch(self.key(user_id))[item_id] = record.to_json()
            self.write_count += 1

    async def write_batch(self, user_id: str, records: Dict[str, PersistedRecord]) -> None:
        if not records:
            return

        async with self._lock:
            fields = self._touch(self.key(user_id))
            for item_id, record in records.items():
                fields[item_id] = record.to_json()
            self.write_count += 1

    async def get_all(self, user_id: str) -> Dict[str, PersistedRecord]:
        async with self._lock:
            key = self.key(user_id)
            entry = self.hashes.get(key)
            if entry is None:
                return {}

            if datetime.now(timezone.utc) > entry["expires_at"]:
                del self.hashes[key]
                return {}

            return _decode_fields(entry["fields"])

    async def clear_expired(self) -> int:
        """Clear expired hashes and return count"""

        async with self._lock:
            now = datetime.now(timezone.utc)
            expired_keys = [
                key for key, entry in self.hashes.items()
                if now > entry["expires_at"]
            ]

            for key in expired_keys:
                del self.hashes[key]

            return len(expired_keys)


class RedisBriefedItemStore(BriefedItemStore):
    """Redis-backed store that degrades to a no-op while Redis is unreachable"""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        namespace: str = DEFAULT_NAMESPACE,
        ttl_days: int = DEFAULT_TTL_DAYS,
        client: Optional[redis.Redis] = None,
        retry_after_seconds: float = 30.0,
    ):
        super().__init__(namespace, ttl_days)
        if client is None:
            if not redis_url:
                raise ValueError("redis_url or client is required")
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        self.client = client
        self.retry_after_seconds = retry_after_seconds
        self._unavailable_since: Optional[float] = None

    @property
    def available(self) -> bool:
        if self._unavailable_since is None:
            return True
        # retry after the cool-down window
        return time.monotonic() - self._unavailable_since >= self.retry_after_seconds

    def _mark_unavailable(self, operation: str, user_id: str, error: Exception) -> None:
        if self._unavailable_since is None:
            logger.warning(
                "Briefed item store unavailable",
                operation=operation,
                user_id=user_id,
                error=str(error),
            )
        self._unavailable_since = time.monotonic()

    def _mark_available(self) -> None:
        if self._unavailable_since is not None:
            logger.info("Briefed item store reconnected")
        self._unavailable_since = None

    async def write(self, user_id: str, item_id: str, record: PersistedRecord) -> None:
        if not self.available:
            return

        key = self.key(user_id)
        try:
            await self.client.hset(key, item_id, record.to_json())
            await self.client.expire(key, self.ttl_seconds)
            self._mark_available()
        except (RedisError, OSError) as e:
            self._mark_unavailable("write", user_id, e)

    async def write_batch(self, user_id: str, records: Dict[str, PersistedRecord]) -> None:
        if not records or not self.available:
            return

        key = self.key(user_id)
        try:
            async with self.client.pipeline(transaction=False) as pipe:
                pipe.hset(key, mapping={
                    item_id: record.to_json() for item_id, record in records.items()
                })
                pipe.expire(key, self.ttl_seconds)
                await pipe.execute()
            self._mark_available()

            logger.info("Batch briefed records written", user_id=user_id, count=len(records))
        except (RedisError, OSError) as e:
            self._mark_unavailable("write_batch", user_id, e)

    async def get_all(self, user_id: str) -> Dict[str, PersistedRecord]:
        if not self.available:
            return {}

        try:
            data = await self.client.hgetall(self.key(user_id))
            self._mark_available()
        except (RedisError, OSError) as e:
            self._mark_unavailable("get_all", user_id, e)
            return {}

        return _decode_fields(data)

    async def ping(self) -> None:
        """Check connectivity, raising PersistenceError when unreachable"""

        try:
            await self.client.ping()
        except (RedisError, OSError) as e:
            self._mark_unavailable("ping", "-", e)
            raise PersistenceError(f"Redis unreachable: {e}") from e
        self._mark_available()

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except (RedisError, OSError) as e:
            logger.debug("Error closing Redis client", error=str(e))


def _decode_fields(fields: Dict[str, str]) -> Dict[str, PersistedRecord]:
    records = {}
    for item_id, raw in fields.items():
        try:
            records[item_id] = PersistedRecord.from_json(raw)
        except ValidationError:
            logger.debug("Skipping malformed briefed record", item_id=item_id)
    return records
