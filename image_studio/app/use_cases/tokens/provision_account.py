"""ProvisionAccount Use Case

Creates the token account of a user on first sight and grants the signup
bonus. Calling it again for an existing user is a no-op.
"""

import logging
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.services.unit_of_work import UnitOfWork
from image_studio.app.repositories.user_account_repository import UserAccountRepository
from image_studio.domain.user_account import UserAccount
from image_studio.domain.usage_entry import UsageAction
from .dtos import TokenStatsDTO
from .token_ledger import TokenLedger

logger = logging.getLogger(__name__)


class ProvisionAccount:
    """
    Use Case: Ensure a token account exists

    Business Rules:
    1. Accounts start at balance 0; the signup bonus is a GRANTED ledger
       entry so the balance always equals the sum of the ledger
    2. Only the request that creates the account grants the bonus, under
       the idempotency key "signup:<user_id>"
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: UserAccountRepository,
        token_ledger: TokenLedger,
        signup_tokens: int = 0,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.token_ledger = token_ledger
        self.signup_tokens = signup_tokens

    async def execute(self, user_id: str) -> Result[TokenStatsDTO]:
        if await self.account_repo.get_by_id(user_id):
            return await self.token_ledger.get_stats(user_id)

        try:
            await self.account_repo.create(UserAccount(id=user_id))
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            # A concurrent request created the row first; it grants the bonus
            if await self.account_repo.get_by_id(user_id):
                return await self.token_ledger.get_stats(user_id)
            logger.error(f"Failed to provision account for user {user_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.USER_NOT_FOUND,
                    message=f"Failed to provision account for user {user_id}",
                    reason=str(e),
                )
            )

        logger.info(f"Provisioned token account for user {user_id}")

        if self.signup_tokens > 0:
            granted = await self.token_ledger.credit(
                user_id,
                self.signup_tokens,
                reason="Signup bonus",
                action=UsageAction.GRANTED,
                idempotency_key=f"signup:{user_id}",
            )
            if granted.is_err():
                return Return.err(granted.error)

        return await self.token_ledger.get_stats(user_id)
