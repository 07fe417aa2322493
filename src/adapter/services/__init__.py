from .unit_of_work import SqlAlchemyUnitOfWork
from .credit_store import sqlalchemy_credit_store_factory

__all__ = [
    "SqlAlchemyUnitOfWork",
    "sqlalchemy_credit_store_factory",
]
