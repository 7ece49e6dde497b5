"""DispatchPendingGenerations Use Case

Feeds pending generations into the admission queue, oldest first, while it
has room. Recovers generations created while the queue was full or before a
restart.
"""

import logging
from typing import List
from libs.result import Result, Return
from image_studio.app.errors import ErrorCode
from image_studio.app.repositories.generation_repository import GenerationRepository
from image_studio.app.services.admission_queue import AdmissionQueue, UnitOfWorkFn
from image_studio.domain.generation import GenerationStatus
from .dtos import DispatchResultDTO

logger = logging.getLogger(__name__)


class DispatchPendingGenerations:

    def __init__(
        self,
        generation_repo: GenerationRepository,
        queue: AdmissionQueue,
        unit_of_work: UnitOfWorkFn,
        batch_size: int = 10,
    ):
        self.generation_repo = generation_repo
        self.queue = queue
        self.unit_of_work = unit_of_work
        self.batch_size = batch_size

    async def execute(self) -> Result[DispatchResultDTO]:
        if not await self.queue.has_capacity():
            return Return.ok(DispatchResultDTO(total_pending=0, dispatched_count=0, dispatched_ids=[]))

        pending = await self.generation_repo.list_by_status(
            [GenerationStatus.PENDING], limit=self.batch_size
        )
        pending_ids = [generation.id for generation in pending]
        dispatched: List[str] = []

        for generation_id in pending_ids:
            if self.queue.is_queued(generation_id):
                continue
            queued = await self.queue.enqueue(generation_id, self.unit_of_work)
            if queued.is_ok():
                dispatched.append(generation_id)
            elif queued.error.code == ErrorCode.QUEUE_FULL:
                break

        if dispatched:
            logger.info(f"Dispatched {len(dispatched)} pending generation(s)")

        return Return.ok(
            DispatchResultDTO(
                total_pending=len(pending_ids),
                dispatched_count=len(dispatched),
                dispatched_ids=dispatched,
            )
        )
