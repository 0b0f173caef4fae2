"""Test config and shared fixtures."""
import pytest
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient

from main import app
from cosmos_repository.config import Settings
from cosmos_repository.database.manager import TableClientCache
from apps.contacts.api.router import get_table_cache
from apps.contacts.models import Contact
from apps.contacts.repository import ContactRepository
from fake_tables import TEST_TENANT, FakeDateTimeService, FakeTableDriver


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's .env."""
    return Settings(
        _env_file=None,
        ACCOUNT_NAME="devaccount",
        ACCOUNT_KEY="ZGV2a2V5",
        PURGE_CACHED_CLIENTS_EVERY_MINUTES=60,
        TABLE_CLIENT_CACHE_DURATION=120,
    )


@pytest.fixture
def date_time() -> FakeDateTimeService:
    return FakeDateTimeService()


@pytest.fixture
def table_driver(date_time: FakeDateTimeService) -> FakeTableDriver:
    return FakeTableDriver(date_time)


@pytest.fixture
async def table_cache(
    test_settings: Settings,
    date_time: FakeDateTimeService,
    table_driver: FakeTableDriver
) -> AsyncGenerator[TableClientCache, None]:
    cache = TableClientCache(test_settings, date_time=date_time, driver=table_driver)
    yield cache
    await cache.close()


@pytest.fixture
def contact_repository(table_cache: TableClientCache) -> ContactRepository:
    return ContactRepository(table_cache)


@pytest.fixture
async def sample_contact(contact_repository: ContactRepository) -> Contact:
    """Create sample contact."""
    contact = Contact(
        contact_id="c1",
        region="emea",
        name="Ada Lovelace",
        email="ada@example.com",
        age=36,
    )
    await contact_repository.create_entity(contact, TEST_TENANT)
    return contact


@pytest.fixture
async def client(table_cache: TableClientCache) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    app.dependency_overrides[get_table_cache] = lambda: table_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
