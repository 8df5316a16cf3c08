from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    WEATHER_API_URL: str = "http://localhost:3000"
    WEATHER_UNITS: str = "imperial"
    WEATHER_TIMEOUT_SECONDS: float = 5.0

    # memory | redis | sql
    CACHE_BACKEND: str = "memory"
    CACHE_FRESHNESS_SECONDS: int = 3600
    CACHE_REFRESH_MINUTES: int = 30
    DATABASE_URL: str = "sqlite+aiosqlite:///weatherbot.db"
    REDIS_URL: Optional[str] = None

    WAKE_PHRASE: str = "good morning weatherbot"
    VOICE_LANGUAGE: str = "en-US"
    VOICE_RATE: float = 0.9
    VOICE_PITCH: float = 1.1
    VOICE_VOLUME: float = 1.0

    ACTIVE_PROFILE_ID: str = "7yo-boy"
    HOME_LAT: float = 40.7128
    HOME_LON: float = -74.006
    HOME_NAME: str = "New York"
    HOME_TIMEZONE: str = "America/New_York"
    HOME_ACCURACY: Optional[float] = 50.0
    GEOCODER_USER_AGENT: str = "weatherbot"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "weatherbot.log"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
