import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from src.adapter.services.credit_store import sqlalchemy_credit_store_factory
from src.app.services.credit_cache import CreditCache
from src.app.services.credit_service import CreditService
from src.depends import get_credit_cache, get_session
from src.domain.credit_policy import SubscriptionTier, UserType
from src.domain.user_profile import UserProfile


@pytest_asyncio.fixture(scope="function")
async def engine():
    """In-memory SQLite shared by every session of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def create_user(session_factory):
    """Insert a user profile in its own committed session"""

    async def _create(
        user_id: str,
        user_type: UserType = UserType.COUPLE,
        tier: SubscriptionTier = SubscriptionTier.FREE,
    ) -> UserProfile:
        async with session_factory() as session:
            profile = UserProfile(id=user_id, user_type=user_type, subscription_tier=tier)
            session.add(profile)
            await session.commit()
            return profile

    return _create


@pytest_asyncio.fixture
async def credit_service(session_factory):
    return CreditService(sqlalchemy_credit_store_factory(session_factory), cache=CreditCache(ttl_seconds=0))


@pytest_asyncio.fixture
async def client(db_session):
    """Create test client with database session override"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)
    cache = CreditCache(ttl_seconds=0)

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_credit_cache] = lambda: cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
