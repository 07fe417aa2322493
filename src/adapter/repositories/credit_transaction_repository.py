"""SQLAlchemy implementation of CreditTransactionRepository"""

from typing import List, Tuple
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.credit_transaction import CreditTransaction, TransactionType


class SqlAlchemyCreditTransactionRepository(CreditTransactionRepository):
    """
    SQLAlchemy implementation of CreditTransactionRepository

    Append-only: rows are inserted and read, never updated.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        self.session.add(transaction)
        await self.session.flush()
        return transaction

    async def get_by_user_id(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> Tuple[List[CreditTransaction], int]:
        """
        Page through a user's transactions, newest first

        Ties on timestamp are broken by id, whose prefix is the creation time
        in milliseconds.
        """
        count_stmt = (
            select(func.count())
            .select_from(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.timestamp.desc(), CreditTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def get_spent_sum_by_user(self, user_id: str) -> int:
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.type == TransactionType.SPENT,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
