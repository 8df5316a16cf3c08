from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class WeatherCacheEntry(Base):
    """
    Last known weather for one cache key.

    Rows are overwritten on every successful fetch and never expire; the
    freshness of an entry is judged from ``fetched_at`` when it is read.
    """
    __tablename__ = "weather_cache"

    # "{kind}:{lat}:{lon}[:{day}]"
    key = Column(String(100), primary_key=True)

    # JSON encoded snapshot or list of snapshots
    payload = Column(Text, nullable=False)

    fetched_at = Column(DateTime(timezone=True), nullable=False)

    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
