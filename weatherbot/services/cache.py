import asyncio
import logging
import math
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from weatherbot.config import settings
from weatherbot.exceptions import ValidationError, WeatherFetchError, WeatherTimeoutError
from weatherbot.models import Location, WeatherSnapshot, utc_now
from .stores import CacheEntry, CacheStore, MemoryCacheStore
from .weather import WeatherAPI

logger = logging.getLogger(__name__)

CURRENT = "current"
FORECAST = "forecast"


def _coordinate(location: Any, name: str, bound: float) -> float:
    if location is None:
        raise ValidationError("Location is required", field="location")
    if isinstance(location, dict):
        value = location.get(name)
    else:
        value = getattr(location, name, None)

    if value is None:
        raise ValidationError(f"Location {name} is required", field=name)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"Location {name} must be a number, got {value!r}", field=name)
    if abs(value) > bound:
        label = "Latitude" if name == "lat" else "Longitude"
        raise ValidationError(f"{label} must be between -{bound:g} and {bound:g}", field=name)
    return float(value)


def _timezone_of(location: Any) -> Optional[str]:
    if isinstance(location, dict):
        return location.get("timezone")
    return getattr(location, "timezone", None)


class WeatherCache:
    """
    Network-first weather access with a last-known-good fallback.

    Every successful fetch overwrites the cache entry for its key. When a
    fetch fails the newest entry for the same key is returned marked stale,
    however old it is. Entries are never evicted; freshness is only used
    for reporting.
    """

    def __init__(
            self,
            weather_api: Optional[WeatherAPI] = None,
            store: Optional[CacheStore] = None,
            freshness_seconds: Optional[int] = None,
            fetch_timeout: Optional[float] = None,
            clock: Callable[[], datetime] = utc_now,
    ):
        self.weather_api = weather_api or WeatherAPI()
        self.store = store or MemoryCacheStore()
        self.freshness_seconds = (
            freshness_seconds if freshness_seconds is not None else settings.CACHE_FRESHNESS_SECONDS
        )
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else settings.WEATHER_TIMEOUT_SECONDS
        self.clock = clock

    @staticmethod
    def validate_location(location: Any) -> Tuple[float, float]:
        return _coordinate(location, "lat", 90), _coordinate(location, "lon", 180)

    def _day_bucket(self, location: Any) -> date:
        now = self.clock()
        tz_name = _timezone_of(location)
        if tz_name:
            try:
                return now.astimezone(ZoneInfo(tz_name)).date()
            except (ZoneInfoNotFoundError, ValueError):
                logger.debug(f"Unknown timezone {tz_name!r}, using UTC for the day bucket")
        return now.date()

    def cache_key(self, kind: str, location: Any) -> str:
        lat, lon = self.validate_location(location)
        # + 0.0 folds -0.0 into 0.0
        key = f"{kind}:{round(lat, 2) + 0.0:.2f}:{round(lon, 2) + 0.0:.2f}"
        if kind == FORECAST:
            key += f":{self._day_bucket(location).isoformat()}"
        return key

    async def get_current_weather(self, location: Any) -> WeatherSnapshot:
        """
        Current weather for ``location``.

        Args:
            location: Location, mapping or object with numeric ``lat``/``lon``

        Returns:
            Fresh snapshot, or the cached one with ``is_stale=True``

        Raises:
            ValidationError: missing or out of range coordinates
            WeatherFetchError: the fetch failed and nothing is cached
        """
        lat, lon = self.validate_location(location)
        key = self.cache_key(CURRENT, location)

        try:
            snapshot = await self._fetch(self.weather_api.get_current_weather(lat, lon))
        except WeatherFetchError as e:
            entry = await self._read(key)
            if entry is None:
                logger.error(f"No cached weather for {key} after failed fetch: {e}")
                raise
            logger.warning(f"Serving stale weather for {key} ({entry.age_seconds(self.clock()):.0f}s old): {e}")
            return replace(WeatherSnapshot.from_json(entry.payload), fetched_at=entry.fetched_at, is_stale=True)

        fetched_at = self.clock()
        snapshot = replace(snapshot, fetched_at=fetched_at, is_stale=False)
        await self._write(CacheEntry(key, snapshot.to_json(), fetched_at))
        return snapshot

    async def get_forecast(self, location: Any, days: int = 5) -> List[WeatherSnapshot]:
        """Per-day forecast for ``location``, at most ``days`` entries."""
        lat, lon = self.validate_location(location)
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValidationError(f"days must be a positive integer, got {days!r}", field="days")
        key = self.cache_key(FORECAST, location)

        try:
            forecast = await self._fetch(self.weather_api.get_forecast(lat, lon))
        except WeatherFetchError as e:
            entry = await self._read(key)
            if entry is None:
                logger.error(f"No cached forecast for {key} after failed fetch: {e}")
                raise
            logger.warning(f"Serving stale forecast for {key}: {e}")
            return [
                replace(WeatherSnapshot.from_json(day), fetched_at=entry.fetched_at, is_stale=True)
                for day in entry.payload[:days]
            ]

        fetched_at = self.clock()
        forecast = [replace(day, fetched_at=fetched_at, is_stale=False) for day in forecast]
        await self._write(CacheEntry(key, [day.to_json() for day in forecast], fetched_at))
        return forecast[:days]

    async def _fetch(self, request):
        try:
            return await asyncio.wait_for(request, timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise WeatherTimeoutError(f"Weather fetch exceeded {self.fetch_timeout}s") from e

    async def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            return await self.store.get(key)
        except Exception as e:
            logger.error(f"Cache read failed for {key}: {e}")
            return None

    async def _write(self, entry: CacheEntry):
        try:
            await self.store.set(entry)
        except Exception as e:
            logger.error(f"Cache write failed for {entry.key}: {e}")

    async def clear_cache(self) -> int:
        removed = await self.store.clear()
        logger.info(f"🧹 Cleared {removed} cached weather entries")
        return removed

    async def get_cache_status(self, location: Any) -> Dict[str, Any]:
        key = self.cache_key(CURRENT, location)
        entry = await self._read(key)
        if entry is None:
            return {"key": key, "exists": False, "fresh": False, "age_seconds": None, "fetched_at": None}

        age = entry.age_seconds(self.clock())
        return {
            "key": key,
            "exists": True,
            "fresh": age < self.freshness_seconds,
            "age_seconds": age,
            "fetched_at": entry.fetched_at.isoformat(),
        }

    async def get_cache_stats(self) -> Dict[str, Any]:
        keys = await self.store.keys()
        return {
            "backend": self.store.name,
            "entries": len(keys),
            "current_entries": sum(1 for key in keys if key.startswith(f"{CURRENT}:")),
            "forecast_entries": sum(1 for key in keys if key.startswith(f"{FORECAST}:")),
            "freshness_seconds": self.freshness_seconds,
        }

    async def update_locations_cache(self, locations: Iterable[Location]) -> Dict[str, int]:
        """
        Refresh current weather for several locations.

        Args:
            locations: Locations to refresh

        Returns:
            Dict with "success" and "failed" counts
        """
        locations = list(locations)
        logger.info(f"Refreshing weather cache for {len(locations)} locations")

        success = 0
        failed = 0

        for location in locations:
            try:
                snapshot = await self.get_current_weather(location)
                if snapshot.is_stale:
                    failed += 1
                else:
                    success += 1
            except (WeatherFetchError, ValidationError) as e:
                logger.error(f"Could not refresh weather for {location}: {e}")
                failed += 1

        logger.info(f"✅ Cache refresh finished. Success: {success}, failed: {failed}")
        return {"success": success, "failed": failed}

    async def close(self):
        await self.weather_api.close()
        await self.store.close()
