"""Data Transfer Objects for Token Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class TokenValidationDTO(BaseModel):
    """
    Result of a balance check (read-only)
    """

    user_id: str = Field(..., description="User identifier")
    balance: int = Field(..., description="Current token balance")
    required: int = Field(..., description="Tokens the caller needs")
    sufficient: bool = Field(..., description="balance >= required")
    shortfall: Optional[int] = Field(
        default=None,
        description="Missing tokens when insufficient"
    )


class TokenStatsDTO(BaseModel):
    """
    Response DTO for token statistics

    Returned by TokenLedger.get_stats and GetTokenStats.
    """

    user_id: str = Field(..., description="User identifier")
    balance: int = Field(..., description="Current token balance")
    total_purchased: int = Field(..., description="Lifetime purchased tokens")
    total_used: int = Field(..., description="Tokens consumed by generations")
    free_tokens_granted: int = Field(default=0, description="Lifetime free tokens")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_123",
                "balance": 42,
                "total_purchased": 50,
                "total_used": 18,
                "free_tokens_granted": 10
            }
        }


class AddTokensCommandDTO(BaseModel):
    """
    Command DTO for purchases and grants

    Used as input to PurchaseTokens and GrantTokens.
    """

    user_id: str = Field(..., min_length=1, description="User identifier")
    amount: int = Field(..., gt=0, description="Tokens to add (must be > 0)")
    idempotency_key: str = Field(
        ...,
        min_length=1,
        description="Unique key for the purchase or grant (e.g., payment intent id)"
    )
    reason: Optional[str] = Field(default=None, max_length=255)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_123",
                "amount": 50,
                "idempotency_key": "pi_3MtwBwLkdIwHu7ix28a3tqPa",
                "reason": "Starter pack"
            }
        }


class TokenMovementDTO(BaseModel):
    """
    Response DTO for balance movements
    """

    user_id: str
    action: str
    amount: int
    balance_after: int
    generation_id: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class UsageHistoryResponseDTO(BaseModel):
    user_id: str
    entries: List[TokenMovementDTO]


class BalanceDiscrepancyDTO(BaseModel):
    """
    One account whose balance disagrees with its ledger
    """

    user_id: str
    account_balance: int = Field(..., description="Balance stored on the account")
    calculated_balance: int = Field(..., description="Sum of the user's ledger entries")
    discrepancy: int = Field(..., description="account_balance - calculated_balance")


class ReconciliationResultDTO(BaseModel):
    total_accounts_checked: int
    discrepancies_found: int
    discrepancies: List[BalanceDiscrepancyDTO]
    reconciliation_time: datetime
    execution_time_ms: int
