"""PurchaseTokens / GrantTokens Use Cases

Both credit the balance through the Token Ledger; they differ only in the
ledger action and in which lifetime counter moves.
"""

from libs.result import Result, Return
from image_studio.app.use_cases.tokens.dtos import AddTokensCommandDTO, TokenStatsDTO
from image_studio.app.use_cases.tokens.token_ledger import TokenLedger
from image_studio.domain.usage_entry import UsageAction


class _AddTokens:
    action: UsageAction
    default_reason: str

    def __init__(self, token_ledger: TokenLedger):
        self.token_ledger = token_ledger

    async def execute(self, command: AddTokensCommandDTO) -> Result[TokenStatsDTO]:
        """
        Credit tokens idempotently, then return the fresh stats

        Replaying the same idempotency_key does not credit twice.
        """
        credited = await self.token_ledger.credit(
            command.user_id,
            command.amount,
            reason=command.reason or self.default_reason,
            action=self.action,
            idempotency_key=f"{self.action.value}:{command.idempotency_key}",
        )
        if credited.is_err():
            return Return.err(credited.error)

        return await self.token_ledger.get_stats(command.user_id)


class PurchaseTokens(_AddTokens):
    """Use Case: Credit purchased tokens (after a successful payment)"""
    action = UsageAction.PURCHASED
    default_reason = "Token purchase"


class GrantTokens(_AddTokens):
    """Use Case: Credit free tokens (signup bonus, support gesture)"""
    action = UsageAction.GRANTED
    default_reason = "Free tokens granted"
