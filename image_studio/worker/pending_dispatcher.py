"""Pending Generation Dispatcher Background Worker

Feeds pending generations into this process's admission queue whenever it
has free slots. Only meaningful inside the process that owns the queue, so
it has no standalone entry point.
"""

import asyncio
import logging
from sqlalchemy.orm import sessionmaker

from image_studio.adapter.repositories import SqlAlchemyGenerationRepository
from image_studio.app.services.admission_queue import AdmissionQueue, UnitOfWorkFn
from image_studio.app.use_cases.generation import DispatchPendingGenerations
from image_studio.app.use_cases.generation.dtos import DispatchResultDTO

logger = logging.getLogger(__name__)


class PendingGenerationDispatcher:

    def __init__(
        self,
        session_factory: sessionmaker,
        queue: AdmissionQueue,
        unit_of_work: UnitOfWorkFn,
        batch_size: int = 10,
    ):
        self.async_session_factory = session_factory
        self.queue = queue
        self.unit_of_work = unit_of_work
        self.batch_size = batch_size

    async def run_once(self) -> DispatchResultDTO:
        async with self.async_session_factory() as session:
            use_case = DispatchPendingGenerations(
                SqlAlchemyGenerationRepository(session),
                self.queue,
                self.unit_of_work,
                batch_size=self.batch_size,
            )
            result = await use_case.execute()
        return result.value

    async def run_forever(self, interval_seconds: int = 10):
        logger.info(f"Starting pending dispatcher with {interval_seconds}s interval")

        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Dispatch cycle failed: {e}")

            await asyncio.sleep(interval_seconds)
