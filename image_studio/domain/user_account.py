"""User Account Domain Entity

Holds the prepaid token balance of one user. The account itself is owned by
the identity subsystem; this service only ever mutates the token counters,
and only through the Token Ledger.
"""

from datetime import datetime
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint, Integer, String
from image_studio.domain.base import BaseModel, UTCDateTime, utcnow


class UserAccount(BaseModel, table=True):
    """
    User Account - Prepaid token balance of a user

    Domain Rules:
    - token_balance must be non-negative (enforced by a check constraint)
    - token_balance changes only through atomic ledger statements
    - Every balance change has a matching UsageLedgerEntry
    - Accounts are never deleted by this service
    """

    __tablename__ = "user_accounts"
    __table_args__ = (
        CheckConstraint('token_balance >= 0', name='token_balance_non_negative'),
        CheckConstraint('total_tokens_used >= 0', name='total_tokens_used_non_negative'),
    )

    id: str = Field(
        sa_column=Column(String(255), primary_key=True),
        description="User identifier supplied by the identity subsystem"
    )

    token_balance: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Spendable tokens (must be >= 0)"
    )

    total_tokens_purchased: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Lifetime purchased tokens"
    )

    total_tokens_used: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Tokens currently consumed by reservations and completed generations"
    )

    free_tokens_granted: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Lifetime free tokens granted (signup bonus, support grants)"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime, nullable=False),
        description="Account creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime, nullable=False),
        description="Last balance update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "user_123",
                "token_balance": 42,
                "total_tokens_purchased": 50,
                "total_tokens_used": 18,
                "free_tokens_granted": 10,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }
