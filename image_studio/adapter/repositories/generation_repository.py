"""SQLAlchemy implementation of GenerationRepository

Status changes are compare-and-swap UPDATEs guarded by the expected status:
the statement only matches while the row is still in one of the expected
states, so of two racing transitions exactly one updates a row.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from image_studio.app.repositories.generation_repository import GenerationRepository
from image_studio.domain.base import utcnow
from image_studio.domain.generation import Generation, GenerationStatus


class SqlAlchemyGenerationRepository(GenerationRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, generation: Generation) -> Generation:
        self.session.add(generation)
        await self.session.flush()
        await self.session.refresh(generation)
        return generation

    async def get_by_id(self, generation_id: str) -> Optional[Generation]:
        # Always reload: rows change through bulk UPDATEs that bypass the identity map
        stmt = (
            select(Generation)
            .where(Generation.id == generation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(
        self,
        generation_id: str,
        expected: Iterable[GenerationStatus],
        target: GenerationStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> Optional[Generation]:
        stmt = (
            update(Generation)
            .where(
                Generation.id == generation_id,
                Generation.status.in_(list(expected)),
            )
            .values(status=target, updated_at=utcnow(), **(values or {}))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_by_id(generation_id)

    async def increment_attempts(self, generation_id: str) -> bool:
        stmt = (
            update(Generation)
            .where(
                Generation.id == generation_id,
                Generation.status == GenerationStatus.PROCESSING,
            )
            .values(attempts=Generation.attempts + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_by_user(
        self,
        user_id: str,
        status: Optional[GenerationStatus] = None,
        limit: int = 20,
    ) -> List[Generation]:
        stmt = select(Generation).where(Generation.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Generation.status == status)
        stmt = stmt.order_by(Generation.created_at.desc()).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_status(
        self,
        statuses: Iterable[GenerationStatus],
        limit: int = 10,
        updated_before: Optional[datetime] = None,
    ) -> List[Generation]:
        stmt = select(Generation).where(Generation.status.in_(list(statuses)))
        if updated_before is not None:
            stmt = stmt.where(Generation.updated_at < updated_before)
        stmt = stmt.order_by(Generation.created_at.asc()).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    def _created_since(self, stmt, created_since: Optional[datetime]):
        if created_since is not None:
            stmt = stmt.where(Generation.created_at >= created_since)
        return stmt

    async def count_by_status(
        self, created_since: Optional[datetime] = None
    ) -> Dict[GenerationStatus, int]:
        stmt = self._created_since(
            select(Generation.status, func.count()).group_by(Generation.status),
            created_since,
        )
        result = await self.session.execute(stmt)
        return {GenerationStatus(status): count for status, count in result.all()}

    async def count_by_model(self, created_since: Optional[datetime] = None) -> Dict[str, int]:
        # The JSON path must be bound once for Postgres to accept the GROUP BY
        models = self._created_since(
            select(Generation.__table__.c.parameters["model"].as_string().label("model")),
            created_since,
        ).subquery()
        stmt = select(models.c.model, func.count()).group_by(models.c.model)
        result = await self.session.execute(stmt)
        counts: Dict[str, int] = {}
        for name, count in result.all():
            key = name or "unknown"
            counts[key] = counts.get(key, 0) + count
        return counts

    async def average_processing_time_ms(
        self, created_since: Optional[datetime] = None
    ) -> Optional[float]:
        stmt = self._created_since(
            select(func.avg(Generation.processing_time_ms)).where(
                Generation.processing_time_ms.is_not(None)
            ),
            created_since,
        )
        result = await self.session.execute(stmt)
        average = result.scalar_one()
        return float(average) if average is not None else None
