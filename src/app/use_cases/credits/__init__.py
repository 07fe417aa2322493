"""Credit ledger use cases"""
from .initialize_user_credits import InitializeUserCredits
from .get_user_credits import GetUserCredits
from .validate_credits import ValidateCredits
from .deduct_credits import DeductCredits
from .add_credits import AddCredits
from .get_credit_history import GetCreditHistory
from .check_feature_access import CheckFeatureAccess
from .reset_refreshable_credits import ResetRefreshableCredits
from .change_subscription import ChangeSubscription
from .refresh_due_credits import RefreshDueCredits
from .reconcile_usage import ReconcileUsage
from .get_credit_summary import GetCreditSummary
from .ledger_update import AtomicLedgerUpdate, LedgerUpdate, DEFAULT_MAX_ATTEMPTS
from .dtos import (
    InitializeCreditsCommandDTO,
    DeductCreditsCommandDTO,
    AddCreditsCommandDTO,
    ChangeSubscriptionCommandDTO,
    CreditTransactionDTO,
    UserCreditsDTO,
    CreditValidationResultDTO,
    DeductResultDTO,
    AddCreditsResultDTO,
    ResetCreditsResultDTO,
    CreditHistoryResponseDTO,
    FeatureAccessDTO,
    SubscriptionInfoDTO,
    CreditSummaryDTO,
    RefreshBatchResultDTO,
    UsageDiscrepancyDTO,
    UsageReconciliationResultDTO,
)

__all__ = [
    "InitializeUserCredits",
    "GetUserCredits",
    "ValidateCredits",
    "DeductCredits",
    "AddCredits",
    "GetCreditHistory",
    "CheckFeatureAccess",
    "ResetRefreshableCredits",
    "ChangeSubscription",
    "RefreshDueCredits",
    "ReconcileUsage",
    "GetCreditSummary",
    "AtomicLedgerUpdate",
    "LedgerUpdate",
    "DEFAULT_MAX_ATTEMPTS",
    "InitializeCreditsCommandDTO",
    "DeductCreditsCommandDTO",
    "AddCreditsCommandDTO",
    "ChangeSubscriptionCommandDTO",
    "CreditTransactionDTO",
    "UserCreditsDTO",
    "CreditValidationResultDTO",
    "DeductResultDTO",
    "AddCreditsResultDTO",
    "ResetCreditsResultDTO",
    "CreditHistoryResponseDTO",
    "FeatureAccessDTO",
    "SubscriptionInfoDTO",
    "CreditSummaryDTO",
    "RefreshBatchResultDTO",
    "UsageDiscrepancyDTO",
    "UsageReconciliationResultDTO",
]
