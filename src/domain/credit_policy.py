"""Credit Policy Table

Static mapping of {user type x subscription tier} to monthly allotment,
refresh cadence and feature list, plus per-user-type feature costs.

Changing allotments or costs is a deploy-time change: bump POLICY_VERSION.
The table is validated at import time so that a missing combination fails
on startup instead of silently defaulting.
"""

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

POLICY_VERSION = "2024.1"

DEFAULT_FEATURE_COST = 1

# Pseudo-feature recorded on non-spend transactions
BONUS_FEATURE = "bonus"


class PolicyError(Exception):
    """Raised for a policy lookup or table definition that is not valid"""


class UserType(str, Enum):
    COUPLE = "couple"
    PLANNER = "planner"


class SubscriptionTier(str, Enum):
    FREE = "free"
    # couple tiers
    PREMIUM = "premium"
    PRO = "pro"
    # planner tiers
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class RefreshCadence(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AIFeature(str, Enum):
    # couple features
    DRAFT_MESSAGING = "draft_messaging"
    TODO_GENERATION = "todo_generation"
    FILE_ANALYSIS = "file_analysis"
    MESSAGE_ANALYSIS = "message_analysis"
    INTEGRATED_PLANNING = "integrated_planning"
    BUDGET_GENERATION = "budget_generation"
    VIBE_GENERATION = "vibe_generation"
    BULK_VIBE_GENERATION = "bulk_vibe_generation"
    VENDOR_SUGGESTIONS = "vendor_suggestions"
    GUEST_NOTES_GENERATION = "guest_notes_generation"
    SEATING_LAYOUT_GENERATION = "seating_layout_generation"
    # planner features
    CLIENT_COMMUNICATION = "client_communication"
    VENDOR_COORDINATION = "vendor_coordination"
    CLIENT_PLANNING = "client_planning"
    VENDOR_ANALYSIS = "vendor_analysis"
    CLIENT_PORTAL_CONTENT = "client_portal_content"
    BUSINESS_ANALYTICS = "business_analytics"
    CLIENT_ONBOARDING = "client_onboarding"
    VENDOR_CONTRACT_REVIEW = "vendor_contract_review"
    CLIENT_TIMELINE_CREATION = "client_timeline_creation"
    # shared
    BUDGET_GENERATION_RAG = "budget_generation_rag"
    FOLLOW_UP_QUESTIONS = "follow_up_questions"
    RAG_DOCUMENT_PROCESSING = "rag_document_processing"
    RAG_QUERY_PROCESSING = "rag_query_processing"


@dataclass(frozen=True)
class CreditAllocation:
    """Allotment and limits granted by one (user type, tier) combination"""

    monthly_credits: int
    credit_refresh: RefreshCadence
    ai_features: frozenset
    rollover_credits: int = 0
    # -1 means unlimited, None means not applicable to the user type
    max_vendors: Optional[int] = None
    max_contacts: Optional[int] = None
    max_clients: Optional[int] = None
    max_boards: Optional[int] = None
    max_files: Optional[int] = None

    def includes(self, feature: AIFeature) -> bool:
        return feature in self.ai_features


F = AIFeature

_COUPLE_FREE_FEATURES = frozenset({
    F.DRAFT_MESSAGING, F.TODO_GENERATION, F.FILE_ANALYSIS, F.BUDGET_GENERATION,
    F.BUDGET_GENERATION_RAG, F.VIBE_GENERATION, F.BULK_VIBE_GENERATION,
})

_COUPLE_PREMIUM_FEATURES = frozenset({
    F.DRAFT_MESSAGING, F.TODO_GENERATION, F.FILE_ANALYSIS, F.MESSAGE_ANALYSIS,
    F.VIBE_GENERATION, F.BUDGET_GENERATION, F.BUDGET_GENERATION_RAG,
    F.VENDOR_SUGGESTIONS, F.RAG_DOCUMENT_PROCESSING, F.RAG_QUERY_PROCESSING,
})

_COUPLE_PRO_FEATURES = _COUPLE_PREMIUM_FEATURES | frozenset({
    F.INTEGRATED_PLANNING, F.FOLLOW_UP_QUESTIONS,
})

_PLANNER_FREE_FEATURES = frozenset({
    F.CLIENT_COMMUNICATION, F.VENDOR_COORDINATION, F.BUDGET_GENERATION_RAG,
})

_PLANNER_STARTER_FEATURES = _PLANNER_FREE_FEATURES | frozenset({
    F.CLIENT_PLANNING, F.VENDOR_ANALYSIS, F.RAG_DOCUMENT_PROCESSING,
    F.RAG_QUERY_PROCESSING,
})

_PLANNER_PROFESSIONAL_FEATURES = _PLANNER_STARTER_FEATURES | frozenset({
    F.CLIENT_PORTAL_CONTENT, F.BUSINESS_ANALYTICS, F.VENDOR_CONTRACT_REVIEW,
})

_PLANNER_ENTERPRISE_FEATURES = _PLANNER_PROFESSIONAL_FEATURES | frozenset({
    F.CLIENT_ONBOARDING, F.CLIENT_TIMELINE_CREATION, F.FOLLOW_UP_QUESTIONS,
})


SUBSCRIPTION_CREDITS: dict[UserType, dict[SubscriptionTier, CreditAllocation]] = {
    UserType.COUPLE: {
        SubscriptionTier.FREE: CreditAllocation(
            monthly_credits=15,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_COUPLE_FREE_FEATURES,
            rollover_credits=0,
            max_vendors=20,
            max_contacts=5,
            max_boards=2,
            max_files=25,
        ),
        SubscriptionTier.PREMIUM: CreditAllocation(
            monthly_credits=60,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_COUPLE_PREMIUM_FEATURES,
            rollover_credits=15,
            max_vendors=-1,
            max_contacts=-1,
            max_boards=5,
            max_files=100,
        ),
        SubscriptionTier.PRO: CreditAllocation(
            monthly_credits=150,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_COUPLE_PRO_FEATURES,
            rollover_credits=50,
            max_vendors=-1,
            max_contacts=-1,
            max_boards=10,
            max_files=500,
        ),
    },
    UserType.PLANNER: {
        SubscriptionTier.FREE: CreditAllocation(
            monthly_credits=25,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_PLANNER_FREE_FEATURES,
            max_clients=2,
            max_vendors=50,
        ),
        SubscriptionTier.STARTER: CreditAllocation(
            monthly_credits=100,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_PLANNER_STARTER_FEATURES,
            rollover_credits=25,
            max_clients=5,
            max_vendors=200,
        ),
        SubscriptionTier.PROFESSIONAL: CreditAllocation(
            monthly_credits=300,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_PLANNER_PROFESSIONAL_FEATURES,
            rollover_credits=100,
            max_clients=15,
            max_vendors=1000,
        ),
        SubscriptionTier.ENTERPRISE: CreditAllocation(
            monthly_credits=1000,
            credit_refresh=RefreshCadence.DAILY,
            ai_features=_PLANNER_ENTERPRISE_FEATURES,
            rollover_credits=300,
            max_clients=50,
            max_vendors=-1,
        ),
    },
}


AI_CREDIT_COSTS: dict[UserType, dict[AIFeature, int]] = {
    UserType.COUPLE: {
        F.DRAFT_MESSAGING: 1,
        F.TODO_GENERATION: 2,
        F.FILE_ANALYSIS: 3,
        F.MESSAGE_ANALYSIS: 2,
        F.INTEGRATED_PLANNING: 5,
        F.BUDGET_GENERATION: 3,
        F.BUDGET_GENERATION_RAG: 5,
        F.VIBE_GENERATION: 2,
        F.BULK_VIBE_GENERATION: 5,
        F.VENDOR_SUGGESTIONS: 2,
        F.FOLLOW_UP_QUESTIONS: 1,
        F.GUEST_NOTES_GENERATION: 3,
        F.SEATING_LAYOUT_GENERATION: 4,
        F.RAG_DOCUMENT_PROCESSING: 2,
        F.RAG_QUERY_PROCESSING: 3,
    },
    UserType.PLANNER: {
        F.CLIENT_COMMUNICATION: 1,
        F.VENDOR_COORDINATION: 2,
        F.CLIENT_PLANNING: 3,
        F.VENDOR_ANALYSIS: 2,
        F.CLIENT_PORTAL_CONTENT: 2,
        F.BUSINESS_ANALYTICS: 3,
        F.CLIENT_ONBOARDING: 2,
        F.VENDOR_CONTRACT_REVIEW: 3,
        F.CLIENT_TIMELINE_CREATION: 4,
        F.BUDGET_GENERATION_RAG: 5,
        F.FOLLOW_UP_QUESTIONS: 1,
        F.RAG_DOCUMENT_PROCESSING: 2,
        F.RAG_QUERY_PROCESSING: 3,
    },
}

del F


def tiers_for(user_type: UserType) -> tuple:
    """Tiers that belong to the given user type partition, lowest first"""
    return tuple(SUBSCRIPTION_CREDITS[UserType(user_type)].keys())


def get_subscription_credits(user_type: UserType, tier: SubscriptionTier) -> CreditAllocation:
    """
    Look up the allocation for a (user type, tier) combination

    Raises:
        PolicyError: if the tier does not belong to the user type
    """
    partition = SUBSCRIPTION_CREDITS[UserType(user_type)]
    try:
        return partition[SubscriptionTier(tier)]
    except KeyError:
        raise PolicyError(
            f"Tier '{SubscriptionTier(tier).value}' is not available for "
            f"user type '{UserType(user_type).value}'"
        ) from None


def get_credit_costs(user_type: UserType) -> dict[AIFeature, int]:
    return AI_CREDIT_COSTS[UserType(user_type)]


def get_feature_cost(user_type: UserType, feature: AIFeature) -> int:
    """Cost of one use of a feature; features without an explicit cost cost 1"""
    return get_credit_costs(user_type).get(AIFeature(feature), DEFAULT_FEATURE_COST)


def is_valid_tier(user_type: UserType, tier: SubscriptionTier) -> bool:
    return SubscriptionTier(tier) in SUBSCRIPTION_CREDITS[UserType(user_type)]


def subtract_months(value: datetime, months: int) -> datetime:
    """Calendar month subtraction, clamping the day to the target month's length"""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def is_refresh_due(cadence: RefreshCadence, last_refresh: datetime, now: datetime) -> bool:
    """
    Decide whether the refreshable bucket should be reset

    Daily cadence uses elapsed time (24 hours), not calendar days, so clock
    skew around midnight cannot trigger two refreshes. Monthly and yearly
    cadences use calendar subtraction.
    """
    cadence = RefreshCadence(cadence)
    if cadence == RefreshCadence.DAILY:
        return now - last_refresh >= timedelta(hours=24)
    if cadence == RefreshCadence.MONTHLY:
        return last_refresh < subtract_months(now, 1)
    return last_refresh < subtract_months(now, 12)


def validate_policy_table() -> None:
    """
    Check the table is complete

    Every user type has at least one tier, and every feature listed in an
    allocation has an explicit cost for that user type.
    """
    for user_type in UserType:
        partition = SUBSCRIPTION_CREDITS.get(user_type)
        if not partition:
            raise PolicyError(f"No subscription tiers defined for '{user_type.value}'")
        if SubscriptionTier.FREE not in partition:
            raise PolicyError(f"No free tier defined for '{user_type.value}'")
        costs = AI_CREDIT_COSTS.get(user_type)
        if costs is None:
            raise PolicyError(f"No feature costs defined for '{user_type.value}'")
        for tier, allocation in partition.items():
            if allocation.monthly_credits < 0:
                raise PolicyError(f"Negative allotment for {user_type.value}/{tier.value}")
            missing = [f.value for f in allocation.ai_features if f not in costs]
            if missing:
                raise PolicyError(
                    f"Features without cost for {user_type.value}/{tier.value}: {sorted(missing)}"
                )
        for cost in costs.values():
            if cost <= 0:
                raise PolicyError(f"Non-positive feature cost for '{user_type.value}'")


validate_policy_table()
