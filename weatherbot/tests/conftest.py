from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from weatherbot.database.models import Base
from weatherbot.models import Location, WeatherSnapshot
from weatherbot.profiles import get_profile
from weatherbot.tests.fakes import FakeClock


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    yield maker

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def home():
    return Location(
        lat=40.7128,
        lon=-74.006,
        name="New York",
        timezone="America/New_York",
        source="device",
        accuracy=25.0,
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def boy():
    return get_profile("7yo-boy")


@pytest.fixture
def girl():
    return get_profile("4yo-girl")


@pytest.fixture
def mild_day():
    return WeatherSnapshot(
        temperature=65,
        feels_like=63,
        conditions="Partly Cloudy",
        precipitation_probability=10,
        wind_speed=5,
        uv_index=2,
        humidity=55,
    )
