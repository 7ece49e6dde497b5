"""Get Token Stats Use Case

Retrieves a user's balance and lifetime counters.
"""

from libs.result import Result
from image_studio.app.use_cases.tokens.dtos import TokenStatsDTO
from image_studio.app.use_cases.tokens.token_ledger import TokenLedger


class GetTokenStats:
    """
    Read-only operation returning {balance, total_purchased, total_used}

    Errors:
        USER_NOT_FOUND: No account for the user
    """

    def __init__(self, token_ledger: TokenLedger):
        self.token_ledger = token_ledger

    async def execute(self, user_id: str) -> Result[TokenStatsDTO]:
        return await self.token_ledger.get_stats(user_id)
