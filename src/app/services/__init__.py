from .unit_of_work import UnitOfWork
from .credit_cache import CreditCache

__all__ = [
    "UnitOfWork",
    "CreditCache",
]
