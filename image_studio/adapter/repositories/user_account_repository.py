"""SQLAlchemy implementation of UserAccountRepository

Balance mutations are single conditional UPDATE statements, so the check
and the write can never be separated by a concurrent request.
"""

from typing import List, Optional
from sqlalchemy import case, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from image_studio.app.repositories.user_account_repository import UserAccountRepository
from image_studio.domain.base import utcnow
from image_studio.domain.user_account import UserAccount


class SqlAlchemyUserAccountRepository(UserAccountRepository):
    """
    SQLAlchemy implementation of UserAccountRepository

    Features:
    - Conditional debit (UPDATE ... WHERE token_balance >= amount)
    - Atomic increments for credits and lifetime counters
    - Optional SELECT FOR UPDATE on reads
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str, for_update: bool = False) -> Optional[UserAccount]:
        stmt = (
            select(UserAccount)
            .where(UserAccount.id == user_id)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, account: UserAccount) -> UserAccount:
        self.session.add(account)
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def debit(self, user_id: str, amount: int) -> Optional[int]:
        stmt = (
            update(UserAccount)
            .where(UserAccount.id == user_id, UserAccount.token_balance >= amount)
            .values(
                token_balance=UserAccount.token_balance - amount,
                total_tokens_used=UserAccount.total_tokens_used + amount,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self._read_balance(user_id)

    async def credit(
        self,
        user_id: str,
        amount: int,
        purchased: int = 0,
        granted: int = 0,
        used_delta: int = 0,
    ) -> Optional[int]:
        values = {
            "token_balance": UserAccount.token_balance + amount,
            "updated_at": utcnow(),
        }
        if purchased:
            values["total_tokens_purchased"] = UserAccount.total_tokens_purchased + purchased
        if granted:
            values["free_tokens_granted"] = UserAccount.free_tokens_granted + granted
        if used_delta:
            values["total_tokens_used"] = case(
                (UserAccount.total_tokens_used + used_delta < 0, 0),
                else_=UserAccount.total_tokens_used + used_delta,
            )

        stmt = (
            update(UserAccount)
            .where(UserAccount.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self._read_balance(user_id)

    async def get_all(self) -> List[UserAccount]:
        stmt = select(UserAccount).order_by(UserAccount.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _read_balance(self, user_id: str) -> int:
        stmt = select(UserAccount.token_balance).where(UserAccount.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()
