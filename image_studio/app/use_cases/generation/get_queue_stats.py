"""GetQueueStats Use Case"""

from libs.result import Result, Return
from image_studio.app.services.admission_queue import AdmissionQueue
from .dtos import QueueStatsDTO


class GetQueueStats:

    def __init__(self, queue: AdmissionQueue):
        self.queue = queue

    async def execute(self) -> Result[QueueStatsDTO]:
        stats = await self.queue.stats()
        return Return.ok(
            QueueStatsDTO(
                active=stats.active,
                capacity=stats.capacity,
                estimated_wait_ms=stats.estimated_wait_ms,
            )
        )
