"""RetryGeneration Use Case"""

import logging
from libs.result import Result, Return
from image_studio.app.services.admission_queue import AdmissionQueue, UnitOfWorkFn
from .dtos import GenerationResponseDTO
from .state_machine import GenerationStateMachine

logger = logging.getLogger(__name__)


class RetryGeneration:
    """
    Use Case: Retry a failed generation as a new one

    Returns the NEW generation. The failed one stays untouched.
    """

    def __init__(
        self,
        state_machine: GenerationStateMachine,
        queue: AdmissionQueue,
        unit_of_work: UnitOfWorkFn,
    ):
        self.state_machine = state_machine
        self.queue = queue
        self.unit_of_work = unit_of_work

    async def execute(self, generation_id: str, requester_id: str) -> Result[GenerationResponseDTO]:
        retried = await self.state_machine.retry(generation_id, requester_id)
        if retried.is_err():
            return Return.err(retried.error)
        generation = retried.value

        queued = await self.queue.enqueue(generation.id, self.unit_of_work)
        if queued.is_err():
            logger.warning(f"Retry {generation.id} left pending: {queued.error.code}")

        logger.info(
            f"Generation {generation_id} retried as {generation.id} (retry_count={generation.retry_count})"
        )
        return Return.ok(GenerationResponseDTO.from_entity(generation))
