"""List Usage History Use Case

Returns the most recent ledger entries of a user.
"""

from typing import Optional
from libs.result import Result, Return
from image_studio.app.repositories.usage_entry_repository import UsageEntryRepository
from image_studio.domain.usage_entry import UsageAction
from .dtos import TokenMovementDTO, UsageHistoryResponseDTO


class ListUsageHistory:

    def __init__(self, usage_repo: UsageEntryRepository):
        self.usage_repo = usage_repo

    async def execute(
        self,
        user_id: str,
        limit: int = 50,
        action: Optional[UsageAction] = None,
    ) -> Result[UsageHistoryResponseDTO]:
        entries = await self.usage_repo.list_by_user(user_id, limit=limit, action=action)
        return Return.ok(
            UsageHistoryResponseDTO(
                user_id=user_id,
                entries=[
                    TokenMovementDTO(
                        user_id=entry.user_id,
                        action=entry.action.value,
                        amount=entry.amount,
                        balance_after=entry.balance_after,
                        generation_id=entry.generation_id,
                        reason=entry.reason,
                        created_at=entry.created_at,
                    )
                    for entry in entries
                ],
            )
        )
