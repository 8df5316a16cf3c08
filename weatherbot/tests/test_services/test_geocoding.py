import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from geopy.exc import GeocoderServiceError, GeocoderTimedOut

from weatherbot.services.geocoding import Geocoder


def make_place(lat, lon, address, display="Somewhere, Earth"):
    place = MagicMock()
    place.latitude = lat
    place.longitude = lon
    place.address = display
    place.raw = {"address": address}
    return place


@pytest.fixture
def nominatim():
    with patch("weatherbot.services.geocoding.Nominatim") as mock_nominatim:
        geolocator = mock_nominatim.return_value.__aenter__.return_value
        mock_nominatim.return_value.__aexit__.return_value = False
        geolocator.geocode = AsyncMock()
        yield mock_nominatim, geolocator


@pytest.mark.asyncio
async def test_resolves_city(nominatim):
    mock_nominatim, geolocator = nominatim
    geolocator.geocode.return_value = make_place(42.3601, -71.0589, {"city": "Boston", "state": "Massachusetts"})

    location = await Geocoder(user_agent="test-agent").resolve_location("boston", "America/New_York")

    assert location.name == "Boston"
    assert location.lat == 42.3601
    assert location.timezone == "America/New_York"
    assert location.source == "user_specified"
    assert mock_nominatim.call_args[1]["user_agent"] == "test-agent"
    geolocator.geocode.assert_awaited_once_with("boston", exactly_one=True, addressdetails=True, language="en")


@pytest.mark.asyncio
async def test_falls_back_through_address_parts(nominatim):
    _, geolocator = nominatim
    geolocator.geocode.return_value = make_place(44.0, -72.7, {"village": "Stowe", "state": "Vermont"})

    location = await Geocoder().resolve_location("stowe", "America/New_York")

    assert location.name == "Stowe"


@pytest.mark.asyncio
async def test_uses_display_name_without_address(nominatim):
    _, geolocator = nominatim
    geolocator.geocode.return_value = make_place(0.0, 0.0, {}, display="Null Island, Atlantic Ocean")

    location = await Geocoder().resolve_location("null island", "UTC")

    assert location.name == "Null Island"


@pytest.mark.asyncio
async def test_unknown_place(nominatim):
    _, geolocator = nominatim
    geolocator.geocode.return_value = None

    assert await Geocoder().resolve_location("Atlantis", "UTC") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [GeocoderTimedOut("slow"), GeocoderServiceError("down")])
async def test_lookup_failures_return_none(nominatim, error):
    _, geolocator = nominatim
    geolocator.geocode.side_effect = error

    assert await Geocoder().resolve_location("Paris", "Europe/Paris") is None


@pytest.mark.asyncio
async def test_out_of_range_coordinates_are_rejected(nominatim):
    _, geolocator = nominatim
    geolocator.geocode.return_value = make_place(123.0, 0.0, {"city": "Nowhere"})

    assert await Geocoder().resolve_location("Nowhere", "UTC") is None
