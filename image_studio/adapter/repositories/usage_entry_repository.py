"""SQLAlchemy implementation of UsageEntryRepository

Append-only: entries are inserted and read, never updated or deleted.
"""

from typing import List, Optional
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from image_studio.app.repositories.usage_entry_repository import UsageEntryRepository
from image_studio.domain.usage_entry import UsageAction, UsageLedgerEntry


class SqlAlchemyUsageEntryRepository(UsageEntryRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, entry: UsageLedgerEntry) -> UsageLedgerEntry:
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[UsageLedgerEntry]:
        stmt = select(UsageLedgerEntry).where(
            UsageLedgerEntry.idempotency_key == idempotency_key
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        action: Optional[UsageAction] = None,
    ) -> List[UsageLedgerEntry]:
        stmt = select(UsageLedgerEntry).where(UsageLedgerEntry.user_id == user_id)
        if action is not None:
            stmt = stmt.where(UsageLedgerEntry.action == action)
        stmt = stmt.order_by(
            UsageLedgerEntry.created_at.desc(), UsageLedgerEntry.id.desc()
        ).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_generation(self, generation_id: str) -> List[UsageLedgerEntry]:
        stmt = (
            select(UsageLedgerEntry)
            .where(UsageLedgerEntry.generation_id == generation_id)
            .order_by(UsageLedgerEntry.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_sum_by_user(self, user_id: str) -> int:
        stmt = select(func.coalesce(func.sum(UsageLedgerEntry.amount), 0)).where(
            UsageLedgerEntry.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
