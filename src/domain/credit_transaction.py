"""Credit Transaction Domain Entity

Immutable append-only audit trail of all credit mutations.
"""

import secrets
import string
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from sqlmodel import Field, Column, Index
from sqlalchemy import JSON, ForeignKey, String
from src.domain.base import BaseModel, utc_now

MetadataValue = Union[str, int, float, bool, None]

_BASE36 = string.digits + string.ascii_lowercase


def generate_transaction_id() -> str:
    """<epoch-millis>-<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


class TransactionType(str, Enum):
    """Credit transaction types"""
    SPENT = "spent"          # Feature use
    PURCHASED = "purchased"  # Paid top-up into the bonus bucket
    BONUS = "bonus"          # Promotion or admin adjustment


class CreditTransaction(BaseModel, table=True):
    """
    Credit Transaction - Immutable audit trail of credit mutations

    Domain Rules:
    - Transactions are immutable (append-only)
    - amount is always positive; type gives the direction
    - feature is an AIFeature value for spent transactions and "bonus" otherwise
    - metadata is opaque audit data, never interpreted
    """

    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index("ix_credit_transactions_user_timestamp", "user_id", "timestamp"),
    )

    id: str = Field(
        default_factory=generate_transaction_id,
        sa_column=Column(String(64), primary_key=True),
        description="Transaction identifier (<epoch-millis>-<random>)"
    )

    user_id: str = Field(
        sa_column=Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        description="Owner of the ledger this transaction belongs to"
    )

    type: TransactionType = Field(
        description="Type of transaction (spent, purchased, bonus)"
    )

    amount: int = Field(
        gt=0,
        description="Credit amount (always positive)"
    )

    feature: str = Field(
        description="AI feature for spent transactions, 'bonus' otherwise"
    )

    timestamp: datetime = Field(
        default_factory=utc_now,
        description="Transaction timestamp (immutable)"
    )

    # "metadata" is reserved on declarative models, so the attribute name differs from the column
    details: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False, default=dict),
        description="Opaque audit data"
    )

    description: Optional[str] = Field(
        default=None,
        description="Human readable description"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "1704067200000-k3j9x0a1b",
                "user_id": "user_123",
                "type": "spent",
                "amount": 2,
                "feature": "todo_generation",
                "timestamp": "2024-01-01T00:00:00Z",
                "details": {"request_id": "req_1", "user_agent": "curl/8.0"},
                "description": "Used todo_generation feature"
            }
        }
