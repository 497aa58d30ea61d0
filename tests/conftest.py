# conftest.py
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from checkin_api.config import Settings
from checkin_api.db.database import init_db
from checkin_api.main import create_app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
API_TOKEN = "test-token"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        api_token=API_TOKEN,
        redis_url="",
        rate_limit_per_minute=0
    )


@pytest_asyncio.fixture
async def app(settings):
    app = create_app(settings)
    await init_db(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def session(app):
    async with app.state.session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_TOKEN}"}
