import logging
from typing import Optional

from geopy.adapters import AioHTTPAdapter
from geopy.exc import GeocoderServiceError, GeocoderTimedOut
from geopy.geocoders import Nominatim

from weatherbot.config import settings
from weatherbot.exceptions import ValidationError
from weatherbot.models import Location

logger = logging.getLogger(__name__)


class Geocoder:
    """Resolves spoken place names through Nominatim (OpenStreetMap)."""

    def __init__(self, user_agent: Optional[str] = None, timeout: float = 10, language: str = "en"):
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = timeout
        self.language = language

    async def resolve_location(self, name: str, timezone: str) -> Optional[Location]:
        """
        Look up ``name`` and build a user specified Location.

        Nominatim does not report timezones, so the caller passes the one to
        use, normally the device's.

        Returns:
            Location, or None when the place is unknown or the lookup failed
        """
        try:
            async with Nominatim(
                    user_agent=self.user_agent,
                    adapter_factory=AioHTTPAdapter,
                    timeout=self.timeout
            ) as geolocator:
                place = await geolocator.geocode(
                    name,
                    exactly_one=True,
                    addressdetails=True,
                    language=self.language
                )
        except GeocoderTimedOut:
            logger.error(f"Geocoder timed out for '{name}'")
            return None
        except GeocoderServiceError as e:
            logger.error(f"Geocoder service error for '{name}': {e}")
            return None

        if place is None:
            logger.warning(f"Place '{name}' not found")
            return None

        address = place.raw.get("address", {})
        normalized = (
                address.get("city") or
                address.get("town") or
                address.get("village") or
                address.get("county") or
                address.get("state") or
                place.address.split(",")[0].strip()
        )

        try:
            return Location(
                lat=place.latitude,
                lon=place.longitude,
                name=normalized,
                timezone=timezone,
                source="user_specified",
            )
        except ValidationError as e:
            logger.error(f"Geocoder returned an unusable location for '{name}': {e}")
            return None
