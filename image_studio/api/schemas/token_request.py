"""Request schemas for the Token API"""

from typing import Optional
from pydantic import BaseModel, Field


class AddTokensRequestSchema(BaseModel):
    """
    Request schema for purchases and grants

    Used for POST /tokens/purchase and POST /tokens/grant endpoints.
    """

    user_id: str = Field(..., min_length=1, description="User receiving the tokens")
    amount: int = Field(..., gt=0, le=100000, description="Tokens to add (must be > 0)")
    idempotency_key: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Unique key (e.g., payment id); replays return the first result"
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
