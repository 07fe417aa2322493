from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.credit_store import sqlalchemy_credit_store_factory
from src.app.services.credit_cache import CreditCache
from src.app.services.credit_service import CreditService

engine = create_async_engine(ApplicationConfig.DB_URI, echo=ApplicationConfig.DB_ECHO, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

credit_cache = CreditCache(
    ttl_seconds=ApplicationConfig.CREDIT_CACHE_TTL_SECONDS,
    max_entries=ApplicationConfig.CREDIT_CACHE_MAX_ENTRIES,
)

credit_service = CreditService(
    sqlalchemy_credit_store_factory(AsyncSessionLocal),
    cache=credit_cache,
    max_attempts=ApplicationConfig.CREDIT_TRANSACTION_MAX_ATTEMPTS,
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_credit_cache() -> CreditCache:
    return credit_cache


def get_credit_service() -> CreditService:
    return credit_service
