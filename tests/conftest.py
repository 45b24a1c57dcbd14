import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ADMIN_EMAILS", '["admin@example.com"]')
os.environ.setdefault("RIDE_WRITE_BACKOFF_SECONDS", "0")

from datetime import datetime

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridehail.core.cache import category_cache, ride_history_cache
from ridehail.core.database import Base, build_engine, get_db
from ridehail.main import app
from ridehail.maps.client import MapsClient
from ridehail.models.catalog import VehicleCategory
from ridehail.models.user import User, Driver, UserRole, ApprovalStatus

ADMIN_HEADERS = {"X-Admin-Email": "admin@example.com"}

# Off-peak Tuesday, 11:00 in the service timezone
OFF_PEAK = datetime(2024, 5, 14, 11, 0)

ORIGIN = {"place": "Praça", "address": "Praça Getúlio Vargas, Catalão - GO", "coordinates": [-47.9466, -18.1661]}
DESTINATION = {"place": "Rodoviária", "address": "Av. Vinte de Agosto, Catalão - GO", "coordinates": [-47.9366, -18.1561]}


def route_handler(distance=5000.0, duration=600.0):
    """Maps provider stub answering every directions request with one route."""

    def handler(request: httpx.Request) -> httpx.Response:
        if "/directions/" in request.url.path:
            return httpx.Response(200, json={
                "routes": [{
                    "distance": distance,
                    "duration": duration,
                    "geometry": {"type": "LineString", "coordinates": [[-47.9466, -18.1661], [-47.9366, -18.1561]]},
                }],
            })
        return httpx.Response(200, json={
            "features": [{"place_name": "Praça Getúlio Vargas, Catalão - GO", "center": [-47.9466, -18.1661]}],
        })

    return handler


@pytest.fixture(autouse=True)
def clear_caches():
    category_cache.invalidate()
    ride_history_cache.invalidate()
    yield
    category_cache.invalidate()
    ride_history_cache.invalidate()


@pytest.fixture
async def engine(tmp_path):
    # File database: every session gets its own connection and transaction
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ridehail.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def maps():
    client = MapsClient(access_token="test-token", transport=httpx.MockTransport(route_handler()))
    yield client
    await client.aclose()


@pytest.fixture
async def client(session_factory, maps):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.maps_client = maps
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
async def category(session_factory):
    category = VehicleCategory(
        name="Econômico",
        description="Carros compactos",
        base_price=5.0,
        price_per_km=2.0,
        min_price=7.0,
        dynamic_pricing={
            "rainMultiplier": 1.2,
            "peakHoursMultiplier": 1.5,
            "peakHours": [{"start": "07:00", "end": "09:00"}, {"start": "17:00", "end": "19:00"}],
        },
    )
    async with session_factory() as session:
        session.add(category)
        await session.commit()
    return category


@pytest.fixture
async def passenger(session_factory):
    user = User(email="rider@example.com", name="Ana", phone="64999990000",
                role=UserRole.PASSENGER, status=ApprovalStatus.APPROVED)
    async with session_factory() as session:
        session.add(user)
        await session.commit()
    return user


async def make_driver(db, email, name, online=True, approved=True):
    user = User(email=email, name=name, phone="64988880000", role=UserRole.DRIVER,
                status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING)
    db.add(user)
    await db.flush()
    driver = Driver(
        id=user.id,
        name=name,
        email=email,
        phone="64988880000",
        status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING,
        is_online=online,
        current_location=[-47.95, -18.17],
        vehicle={"model": "Onix", "plate": "ABC1D23", "color": "Prata", "year": 2020},
    )
    db.add(driver)
    await db.commit()
    return driver


@pytest.fixture
async def driver(session_factory):
    async with session_factory() as session:
        return await make_driver(session, "driver@example.com", "Carlos")


@pytest.fixture
async def other_driver(session_factory):
    async with session_factory() as session:
        return await make_driver(session, "driver2@example.com", "Bruna")
