from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.orm import sessionmaker
from src.adapter.repositories.user_profile_repository import SqlAlchemyUserProfileRepository
from src.adapter.repositories.user_credits_repository import SqlAlchemyUserCreditsRepository
from src.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.credit_service import CreditStore, CreditStoreFactory


def sqlalchemy_credit_store_factory(session_factory: sessionmaker) -> CreditStoreFactory:
    """Opens a fresh session per call and wires the SQLAlchemy repositories to it"""

    @asynccontextmanager
    async def open_store() -> AsyncIterator[CreditStore]:
        async with session_factory() as session:
            yield CreditStore(
                uow=SqlAlchemyUnitOfWork(session),
                profiles=SqlAlchemyUserProfileRepository(session),
                credits=SqlAlchemyUserCreditsRepository(session),
                transactions=SqlAlchemyCreditTransactionRepository(session),
            )

    return open_store
