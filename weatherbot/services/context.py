import logging
from typing import Optional, Protocol

from weatherbot.config import Settings, settings
from weatherbot.models import Location, Profile
from weatherbot.profiles import get_profile

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def get_location(self) -> Location: ...


class ProfileProvider(Protocol):
    async def get_active_profile(self) -> Profile: ...


class StaticLocationProvider:
    def __init__(self, location: Location):
        self.location = location

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "StaticLocationProvider":
        return cls(Location(
            lat=config.HOME_LAT,
            lon=config.HOME_LON,
            name=config.HOME_NAME,
            timezone=config.HOME_TIMEZONE,
            source="device",
            accuracy=config.HOME_ACCURACY,
        ))

    async def get_location(self) -> Location:
        return self.location


class StaticProfileProvider:
    """Holds the currently selected child profile."""

    def __init__(self, profile_id: Optional[str] = None):
        self.profile = get_profile(profile_id or settings.ACTIVE_PROFILE_ID)

    def select(self, profile_id: str) -> Profile:
        self.profile = get_profile(profile_id)
        logger.info(f"Active profile is now {self.profile.id}")
        return self.profile

    async def get_active_profile(self) -> Profile:
        return self.profile
