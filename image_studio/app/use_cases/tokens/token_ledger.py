"""Token Ledger

Owns the per-user token balance. Every mutation is a single conditional
statement against the database plus an appended UsageLedgerEntry, so two
concurrent requests from the same user can never spend the same tokens.
"""

import logging
from typing import Optional
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.services.unit_of_work import UnitOfWork
from image_studio.app.repositories.user_account_repository import UserAccountRepository
from image_studio.app.repositories.usage_entry_repository import UsageEntryRepository
from image_studio.domain.usage_entry import UsageAction, UsageLedgerEntry
from .dtos import TokenStatsDTO, TokenValidationDTO

logger = logging.getLogger(__name__)


class TokenLedger:
    """
    Token balance operations

    Business Rules:
    1. Balance never goes negative: debit re-checks the balance in the
       same UPDATE that writes it (no read-then-write in Python)
    2. Every debit appends an entry with amount < 0, every credit an entry
       with amount > 0
    3. Refund credits (failed, cancelled) give back total_tokens_used
    4. Purchases and grants carry an idempotency key; replaying one returns
       the balance recorded the first time

    `commit=False` leaves the transaction open so the caller can bundle the
    ledger write with its own row changes and commit once.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: UserAccountRepository,
        usage_repo: UsageEntryRepository,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.usage_repo = usage_repo

    async def validate(self, user_id: str, required_tokens: int) -> Result[TokenValidationDTO]:
        """
        Read the balance and compare it with `required_tokens` (never mutates)
        """
        account = await self.account_repo.get_by_id(user_id)
        if not account:
            return self._user_not_found(user_id)

        sufficient = account.token_balance >= required_tokens
        return Return.ok(
            TokenValidationDTO(
                user_id=user_id,
                balance=account.token_balance,
                required=required_tokens,
                sufficient=sufficient,
                shortfall=None if sufficient else required_tokens - account.token_balance,
            )
        )

    async def debit(
        self,
        user_id: str,
        amount: int,
        generation_id: Optional[str],
        reason: str,
        commit: bool = True,
    ) -> Result[int]:
        """
        Reserve tokens

        Returns:
            Result[int]: New balance, or INSUFFICIENT_TOKENS / USER_NOT_FOUND
            with the balance left untouched
        """
        if amount <= 0:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message="Debit amount must be greater than 0",
                    reason=f"amount={amount}",
                )
            )

        try:
            new_balance = await self.account_repo.debit(user_id, amount)

            if new_balance is None:
                account = await self.account_repo.get_by_id(user_id)
                if not account:
                    return self._user_not_found(user_id)
                return Return.err(
                    Error(
                        code=ErrorCode.INSUFFICIENT_TOKENS,
                        message=f"Insufficient tokens. Required: {amount}, Available: {account.token_balance}",
                        reason=f"balance={account.token_balance}, required={amount}",
                    )
                )

            await self.usage_repo.create(
                UsageLedgerEntry(
                    user_id=user_id,
                    action=UsageAction.STARTED,
                    amount=-amount,
                    balance_after=new_balance,
                    generation_id=generation_id,
                    reason=reason,
                )
            )

            if commit:
                await self.uow.commit()

            logger.info(f"Debited {amount} tokens from user {user_id} (balance={new_balance})")
            return Return.ok(new_balance)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Debit of {amount} tokens for user {user_id} failed: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.DEBIT_FAILED,
                    message="Failed to debit tokens",
                    reason=str(e),
                )
            )

    async def credit(
        self,
        user_id: str,
        amount: int,
        generation_id: Optional[str] = None,
        reason: Optional[str] = None,
        action: UsageAction = UsageAction.FAILED,
        idempotency_key: Optional[str] = None,
        commit: bool = True,
    ) -> Result[int]:
        """
        Add tokens back (refund) or in (purchase, grant)

        Returns:
            Result[int]: New balance, or USER_NOT_FOUND
        """
        if amount <= 0:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message="Credit amount must be greater than 0",
                    reason=f"amount={amount}",
                )
            )
        if action in (UsageAction.STARTED, UsageAction.COMPLETED):
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"'{action.value}' is not a credit action",
                )
            )

        try:
            if idempotency_key:
                existing = await self.usage_repo.get_by_idempotency_key(idempotency_key)
                if existing:
                    return Return.ok(existing.balance_after)

            new_balance = await self.account_repo.credit(
                user_id,
                amount,
                purchased=amount if action == UsageAction.PURCHASED else 0,
                granted=amount if action == UsageAction.GRANTED else 0,
                used_delta=-amount if action in (UsageAction.FAILED, UsageAction.CANCELLED) else 0,
            )
            if new_balance is None:
                return self._user_not_found(user_id)

            await self.usage_repo.create(
                UsageLedgerEntry(
                    user_id=user_id,
                    action=action,
                    amount=amount,
                    balance_after=new_balance,
                    generation_id=generation_id,
                    reason=reason,
                    idempotency_key=idempotency_key,
                )
            )

            if commit:
                await self.uow.commit()

            logger.info(
                f"Credited {amount} tokens to user {user_id} ({action.value}, balance={new_balance})"
            )
            return Return.ok(new_balance)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Credit of {amount} tokens for user {user_id} failed: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.CREDIT_FAILED,
                    message="Failed to credit tokens",
                    reason=str(e),
                )
            )

    async def record(
        self,
        user_id: str,
        action: UsageAction,
        generation_id: Optional[str],
        reason: Optional[str] = None,
    ) -> None:
        """
        Append an audit-only entry (amount 0) inside the caller's transaction
        """
        account = await self.account_repo.get_by_id(user_id)
        await self.usage_repo.create(
            UsageLedgerEntry(
                user_id=user_id,
                action=action,
                amount=0,
                balance_after=account.token_balance if account else 0,
                generation_id=generation_id,
                reason=reason,
            )
        )

    async def get_stats(self, user_id: str) -> Result[TokenStatsDTO]:
        account = await self.account_repo.get_by_id(user_id)
        if not account:
            return self._user_not_found(user_id)

        return Return.ok(
            TokenStatsDTO(
                user_id=account.id,
                balance=account.token_balance,
                total_purchased=account.total_tokens_purchased,
                total_used=account.total_tokens_used,
                free_tokens_granted=account.free_tokens_granted,
            )
        )

    @staticmethod
    def _user_not_found(user_id: str) -> Result:
        return Return.err(
            Error(
                code=ErrorCode.USER_NOT_FOUND,
                message=f"User {user_id} not found",
                reason="Account not provisioned",
            )
        )
