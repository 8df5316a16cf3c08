import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from weatherbot.exceptions import (
    WeatherHTTPError,
    WeatherNetworkError,
    WeatherPayloadError,
    WeatherTimeoutError,
)
from weatherbot.services.weather import WeatherAPI

CURRENT = {
    "temperature": 42.5,
    "feelsLike": 38.1,
    "conditions": "Light Rain",
    "humidity": 80,
    "windSpeed": 12,
    "precipitation": 65,
    "uvIndex": 1,
}

FORECAST = [
    {"date": "2025-01-15", "temperature": 42, "conditions": "Rain", "precipitationProbability": 70},
    {"date": "2025-01-16", "temperature": 50, "conditions": "Cloudy", "windSpeed": 8},
]


@pytest_asyncio.fixture
async def backend():
    state = {"current": CURRENT, "forecast": FORECAST, "status": 200, "delay": 0, "raw": None, "requests": []}

    async def respond(request, kind):
        state["requests"].append((kind, await request.json()))
        if state["delay"]:
            await asyncio.sleep(state["delay"])
        if state["raw"] is not None:
            return web.Response(text=state["raw"], status=state["status"], content_type="application/json")
        return web.json_response(state[kind], status=state["status"])

    async def current(request):
        return await respond(request, "current")

    async def forecast(request):
        return await respond(request, "forecast")

    app = web.Application()
    app.router.add_post("/api/weather/current", current)
    app.router.add_post("/api/weather/forecast", forecast)

    server = TestServer(app)
    await server.start_server()
    yield server, state
    await server.close()


@pytest_asyncio.fixture
async def api(backend):
    server, _ = backend
    async with WeatherAPI(base_url=str(server.make_url("/")), units="imperial", timeout=0.5) as client:
        yield client


async def test_get_current_weather(api, backend):
    _, state = backend

    snapshot = await api.get_current_weather(40.71, -74.01)

    assert snapshot.temperature == 42.5
    assert snapshot.feels_like == 38.1
    assert snapshot.conditions == "Light Rain"
    assert snapshot.precipitation_probability == 65
    assert snapshot.wind_speed == 12
    assert snapshot.uv_index == 1
    assert state["requests"] == [("current", {"lat": 40.71, "lon": -74.01, "units": "imperial"})]


async def test_get_forecast(api, backend):
    days = await api.get_forecast(40.71, -74.01)

    assert [day.date for day in days] == ["2025-01-15", "2025-01-16"]
    assert days[0].precipitation_probability == 70
    assert days[1].wind_speed == 8
    assert days[1].uv_index is None
    assert backend[1]["requests"][0][0] == "forecast"


async def test_non_2xx_is_http_error(api, backend):
    backend[1]["status"] = 503

    with pytest.raises(WeatherHTTPError) as exc_info:
        await api.get_current_weather(1, 1)

    assert exc_info.value.status == 503


@pytest.mark.parametrize("raw", ["not json", '{"conditions": "Sunny"}', '{"temperature": 500}', "[]"])
async def test_malformed_payload(api, backend, raw):
    backend[1]["raw"] = raw

    with pytest.raises(WeatherPayloadError):
        await api.get_current_weather(1, 1)


async def test_malformed_forecast(api, backend):
    backend[1]["raw"] = '{"days": 3}'

    with pytest.raises(WeatherPayloadError):
        await api.get_forecast(1, 1)


async def test_timeout(api, backend):
    backend[1]["delay"] = 2

    with pytest.raises(WeatherTimeoutError):
        await api.get_current_weather(1, 1)


async def test_unreachable_backend():
    async with WeatherAPI(base_url="http://127.0.0.1:1", timeout=2) as client:
        with pytest.raises(WeatherNetworkError):
            await client.get_current_weather(1, 1)


async def test_close_is_idempotent():
    client = WeatherAPI(base_url="http://127.0.0.1:1")
    await client.close()
    await client.close()

    assert client.session is None
