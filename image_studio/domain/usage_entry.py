"""Usage Ledger Entry Domain Entity

Immutable append-only audit trail of every balance-affecting event.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Integer, String
from image_studio.domain.base import BaseModel, BigIntegerPK, UTCDateTime, utcnow


class UsageAction(str, Enum):
    """Usage ledger actions"""
    STARTED = "started"        # Tokens reserved for a new generation
    COMPLETED = "completed"    # Reservation finalized (amount 0)
    FAILED = "failed"          # Reservation refunded after failure
    CANCELLED = "cancelled"    # Reservation refunded after cancellation
    PURCHASED = "purchased"    # Tokens bought
    GRANTED = "granted"        # Free tokens granted


REFUND_ACTIONS = frozenset({UsageAction.FAILED, UsageAction.CANCELLED})


class UsageLedgerEntry(BaseModel, table=True):
    """
    Usage Ledger Entry - Immutable audit record of a token movement

    Domain Rules:
    - Entries are immutable (append-only)
    - amount is a signed delta: debits < 0, credits > 0, audit-only events == 0
    - The sum of a user's entries equals the user's token_balance
    - balance_after snapshots the balance right after the movement
    """

    __tablename__ = "usage_ledger_entries"
    __table_args__ = (
        Index('ix_usage_ledger_entries_user_created', 'user_id', 'created_at'),
        Index('ix_usage_ledger_entries_generation', 'generation_id'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigIntegerPK, primary_key=True, autoincrement=True),
        description="Unique entry identifier (auto-increment)"
    )

    user_id: str = Field(
        index=True,
        description="Owner of the balance that moved"
    )

    action: UsageAction = Field(
        description="Event type (started, completed, failed, cancelled, purchased, granted)"
    )

    amount: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Signed token delta"
    )

    balance_after: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Balance right after this entry was applied"
    )

    generation_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True),
        description="Generation this entry belongs to, if any"
    )

    reason: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Human-readable reason"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        unique=True,
        index=True,
        description="Unique key for externally triggered credits (purchases, grants)"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime, nullable=False),
        description="Entry timestamp (immutable)"
    )
