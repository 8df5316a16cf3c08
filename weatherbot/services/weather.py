import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter

from weatherbot.config import settings
from weatherbot.exceptions import (
    ValidationError,
    WeatherHTTPError,
    WeatherNetworkError,
    WeatherPayloadError,
    WeatherTimeoutError,
)
from weatherbot.models import WeatherSnapshot

logger = logging.getLogger(__name__)


class SnapshotPayload(BaseModel):
    """Shape of a single snapshot as returned by the weather backend."""

    model_config = ConfigDict(extra="ignore")

    temperature: float
    feels_like: Optional[float] = Field(None, validation_alias=AliasChoices("feelsLike", "feels_like"))
    conditions: str = ""
    humidity: Optional[float] = None
    wind_speed: Optional[float] = Field(None, validation_alias=AliasChoices("windSpeed", "wind_speed"))
    precipitation: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("precipitation", "precipitationProbability"),
    )
    uv_index: Optional[float] = Field(None, validation_alias=AliasChoices("uvIndex", "uv_index"))
    date: Optional[str] = None

    def to_snapshot(self) -> WeatherSnapshot:
        return WeatherSnapshot(
            temperature=self.temperature,
            feels_like=self.feels_like,
            conditions=self.conditions,
            humidity=self.humidity,
            wind_speed=self.wind_speed,
            precipitation_probability=self.precipitation,
            uv_index=self.uv_index,
            date=self.date,
        )


_forecast_adapter = TypeAdapter(List[SnapshotPayload])


class WeatherAPI:
    """
    Thin client for the weather backend.

    Every failure is mapped onto a ``WeatherFetchError`` subclass so callers
    can tell an unreachable backend from a bad response.
    """

    def __init__(self, base_url: Optional[str] = None, units: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or settings.WEATHER_API_URL).rstrip("/")
        self.units = units or settings.WEATHER_UNITS
        self.timeout = timeout if timeout is not None else settings.WEATHER_TIMEOUT_SECONDS
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def get_current_weather(self, lat: float, lon: float) -> WeatherSnapshot:
        data = await self._post("/api/weather/current", lat, lon)
        try:
            return SnapshotPayload.model_validate(data).to_snapshot()
        except (pydantic.ValidationError, ValidationError) as e:
            logger.error(f"Malformed current weather payload: {e}")
            raise WeatherPayloadError(f"Malformed current weather payload: {e}") from e

    async def get_forecast(self, lat: float, lon: float) -> List[WeatherSnapshot]:
        data = await self._post("/api/weather/forecast", lat, lon)
        if isinstance(data, dict):
            # Some backends wrap the list: {"forecast": [...]}
            data = data.get("forecast", data.get("daily", data))
        try:
            return [day.to_snapshot() for day in _forecast_adapter.validate_python(data)]
        except (pydantic.ValidationError, ValidationError) as e:
            logger.error(f"Malformed forecast payload: {e}")
            raise WeatherPayloadError(f"Malformed forecast payload: {e}") from e

    async def _post(self, path: str, lat: float, lon: float) -> Any:
        url = f"{self.base_url}{path}"
        body: Dict[str, Any] = {"lat": lat, "lon": lon, "units": self.units}
        session = self._ensure_session()

        try:
            async with session.post(url, json=body) as response:
                if response.status < 200 or response.status >= 300:
                    error_text = await response.text()
                    logger.error(f"Weather API error {response.status}: {error_text}")
                    raise WeatherHTTPError(response.status, error_text[:200])

                text = await response.text()
        except asyncio.TimeoutError as e:
            logger.warning(f"Weather API timed out after {self.timeout}s: {url}")
            raise WeatherTimeoutError(f"Request to {url} timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"Weather API unreachable: {e}")
            raise WeatherNetworkError(f"Request to {url} failed: {e}") from e

        try:
            return json.loads(text)
        except ValueError as e:
            raise WeatherPayloadError(f"Weather API returned invalid JSON: {e}") from e
