import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from config import ApplicationConfig
from image_studio.adapter.services.image_provider import MockImageProvider
from image_studio.adapter.services.object_storage import LocalObjectStorage
from image_studio.app.services.rate_limiter import InMemoryRateLimiter
from image_studio.app.services.retry_policy import RetryPolicy
from image_studio.depends import build_services, build_state_machine, build_token_ledger
from image_studio.domain.usage_entry import UsageAction
from image_studio.domain.user_account import UserAccount


class TestConfig(ApplicationConfig):
    __test__ = False

    API_PREFIX = "/api"
    QUEUE_BACKEND = "memory"
    RATE_LIMIT_BACKEND = "memory"
    QUEUE_MAX_CONCURRENT = 2
    SIGNUP_FREE_TOKENS = 10
    ENABLE_SENTRY = 0
    IMAGE_PROVIDER = "mock"
    WEBHOOK_SECRET = "test-webhook-secret"
    SERVICE_API_KEY = "test-service-key"


@pytest.fixture
def test_config():
    return TestConfig


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite database, created fresh for each test"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'image_studio_test.db'}", echo=False, future=True
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def provider():
    return MockImageProvider(images_per_call=1)


@pytest.fixture
def rate_limiter():
    return InMemoryRateLimiter(max_requests=10, window_ms=60 * 60 * 1000)


@pytest.fixture
def services(test_config, engine, provider, rate_limiter, tmp_path):
    return build_services(
        test_config,
        engine=engine,
        provider=provider,
        storage=LocalObjectStorage(str(tmp_path / "images"), "/media"),
        rate_limiter=rate_limiter,
        retry_policy=RetryPolicy(max_attempts=3, base_delay_ms=1),
    )


@pytest_asyncio.fixture
async def db_session(services):
    """Create a new database session for each test"""
    async with services.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def state_machine(db_session, services):
    return build_state_machine(db_session, services.status_tracker)


@pytest_asyncio.fixture
async def token_ledger(db_session):
    return build_token_ledger(db_session)


@pytest_asyncio.fixture
async def create_account(db_session):
    """Insert a token account with the given balance and a matching ledger"""
    ledger = build_token_ledger(db_session)

    async def _create(user_id: str, balance: int) -> UserAccount:
        account = UserAccount(id=user_id)
        db_session.add(account)
        await db_session.commit()
        if balance > 0:
            result = await ledger.credit(
                user_id,
                balance,
                reason="Test purchase",
                action=UsageAction.PURCHASED,
                idempotency_key=f"seed:{user_id}",
            )
            assert result.is_ok()
        await db_session.refresh(account)
        return account

    return _create


@pytest_asyncio.fixture
async def client(test_config, services):
    """Test client with its own services; the admission queue workers run"""
    from image_studio.api.app import create_app

    app = create_app(test_config, services=services)
    await services.queue.start()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await services.queue.shutdown()
