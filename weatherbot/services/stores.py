import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from weatherbot.config import Settings, settings
from weatherbot.database.crud import WeatherCacheCRUD

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    # JSON compatible snapshot, or list of snapshots for forecasts
    payload: Any
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def to_json(self) -> Dict[str, Any]:
        return {"snapshot": self.payload, "fetchedAt": self.fetched_at.isoformat()}

    @classmethod
    def from_json(cls, key: str, data: Dict[str, Any]) -> "CacheEntry":
        return cls(key=key, payload=data["snapshot"], fetched_at=_as_utc(datetime.fromisoformat(data["fetchedAt"])))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CacheStore(Protocol):
    name: str

    async def get(self, key: str) -> Optional[CacheEntry]: ...

    async def set(self, entry: CacheEntry) -> None: ...

    async def clear(self) -> int: ...

    async def keys(self) -> List[str]: ...

    async def close(self) -> None: ...


class MemoryCacheStore:
    name = "memory"

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def set(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    async def keys(self) -> List[str]:
        return list(self._entries)

    async def close(self) -> None:
        pass


class RedisCacheStore:
    """Entries are stored as JSON strings without a TTL."""

    name = "redis"

    def __init__(self, client: aioredis.Redis, prefix: str = "weather:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "weather:") -> "RedisCacheStore":
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await self.client.get(f"{self.prefix}{key}")
        if not raw:
            return None
        return CacheEntry.from_json(key, json.loads(raw))

    async def set(self, entry: CacheEntry) -> None:
        await self.client.set(f"{self.prefix}{entry.key}", json.dumps(entry.to_json()))

    async def clear(self) -> int:
        deleted = 0
        async for key in self.client.scan_iter(f"{self.prefix}*"):
            deleted += await self.client.delete(key)
        return deleted

    async def keys(self) -> List[str]:
        return [key[len(self.prefix):] async for key in self.client.scan_iter(f"{self.prefix}*")]

    async def close(self) -> None:
        await self.client.aclose()


class SQLCacheStore:
    name = "sql"

    def __init__(self, session_maker: Optional[async_sessionmaker] = None, engine: Optional[AsyncEngine] = None):
        if session_maker is None:
            from weatherbot.database import connection

            session_maker = connection.AsyncSessionLocal
            engine = engine or connection.engine
        self.session_maker = session_maker
        # disposed on close; None when the caller owns the engine
        self.engine = engine

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self.session_maker() as db:
            row = await WeatherCacheCRUD.get_entry(db, key)
            if row is None:
                return None
            return CacheEntry(key=row.key, payload=json.loads(row.payload), fetched_at=_as_utc(row.fetched_at))

    async def set(self, entry: CacheEntry) -> None:
        async with self.session_maker() as db:
            await WeatherCacheCRUD.upsert_entry(db, entry.key, json.dumps(entry.payload), entry.fetched_at)

    async def clear(self) -> int:
        async with self.session_maker() as db:
            return await WeatherCacheCRUD.delete_all(db)

    async def keys(self) -> List[str]:
        async with self.session_maker() as db:
            return await WeatherCacheCRUD.list_keys(db)

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("🛑 SQL cache connections closed")


async def build_store(config: Settings = settings) -> CacheStore:
    """Create the cache store selected by ``CACHE_BACKEND``."""
    backend = config.CACHE_BACKEND.lower()

    if backend == "redis":
        if config.REDIS_URL:
            logger.info("✅ Using Redis weather cache")
            return RedisCacheStore.from_url(config.REDIS_URL)
        logger.warning("CACHE_BACKEND=redis but REDIS_URL is not set, using in-memory cache")
    elif backend == "sql":
        from weatherbot.database.connection import init_db

        await init_db()
        logger.info("✅ Using SQL weather cache")
        return SQLCacheStore()
    elif backend != "memory":
        logger.warning(f"Unknown CACHE_BACKEND {config.CACHE_BACKEND!r}, using in-memory cache")

    return MemoryCacheStore()
