from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models


class WeatherCacheCRUD:
    @staticmethod
    async def get_entry(db: AsyncSession, key: str) -> Optional[models.WeatherCacheEntry]:
        result = await db.execute(
            select(models.WeatherCacheEntry).where(models.WeatherCacheEntry.key == key)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_entry(db: AsyncSession, key: str, payload: str, fetched_at: datetime):
        existing = await WeatherCacheCRUD.get_entry(db, key)

        if existing:
            existing.payload = payload
            existing.fetched_at = fetched_at
        else:
            existing = models.WeatherCacheEntry(
                key=key,
                payload=payload,
                fetched_at=fetched_at
            )
            db.add(existing)

        await db.commit()
        return existing

    @staticmethod
    async def list_keys(db: AsyncSession) -> List[str]:
        result = await db.execute(select(models.WeatherCacheEntry.key))
        return list(result.scalars().all())

    @staticmethod
    async def delete_all(db: AsyncSession) -> int:
        result = await db.execute(delete(models.WeatherCacheEntry))
        await db.commit()
        return result.rowcount
