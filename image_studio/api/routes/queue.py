"""Queue API Routes"""

from fastapi import APIRouter, Depends, status
from image_studio.app.use_cases.generation import GetQueueStats
from image_studio.app.use_cases.generation.dtos import QueueStatsDTO
from image_studio.depends import Services, get_services

router = APIRouter(prefix="/queue", tags=["Queue"])


@router.get(
    "/stats",
    response_model=QueueStatsDTO,
    status_code=status.HTTP_200_OK,
)
async def get_queue_stats(services: Services = Depends(get_services)):
    """
    Occupied slots, capacity and a rough wait estimate.
    """
    result = await GetQueueStats(services.queue).execute()
    return result.value
