"""Health check route"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlmodel.ext.asyncio.session import AsyncSession
from image_studio.depends import Services, get_services, get_session

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    await session.execute(text("SELECT 1"))
    stats = await services.queue.stats()
    return {
        "status": "ok",
        "queue": {"active": stats.active, "capacity": stats.capacity},
        "workers_started": services.queue.started,
    }
