"""Background workers for the credit service"""
from .credit_refresh import CreditRefreshWorker
from .usage_reconciler import UsageReconcilerWorker

__all__ = ["CreditRefreshWorker", "UsageReconcilerWorker"]
