import pytest

from weatherbot.config import Settings
from weatherbot.exceptions import ProfileNotFoundError
from weatherbot.services.context import StaticLocationProvider, StaticProfileProvider


@pytest.mark.asyncio
async def test_location_from_settings():
    config = Settings(HOME_LAT=51.5074, HOME_LON=-0.1278, HOME_NAME="London", HOME_TIMEZONE="Europe/London")

    location = await StaticLocationProvider.from_settings(config).get_location()

    assert (location.lat, location.lon) == (51.5074, -0.1278)
    assert location.name == "London"
    assert location.source == "device"
    assert location.diagnostics == []


@pytest.mark.asyncio
async def test_profile_selection():
    provider = StaticProfileProvider("4yo-girl")
    assert (await provider.get_active_profile()).id == "4yo-girl"

    provider.select("10yo-boy")

    assert (await provider.get_active_profile()).id == "10yo-boy"


def test_unknown_profile():
    provider = StaticProfileProvider("7yo-boy")

    with pytest.raises(ProfileNotFoundError):
        provider.select("12yo-robot")

    assert provider.profile.id == "7yo-boy"
