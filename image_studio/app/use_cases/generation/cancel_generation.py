"""CancelGeneration Use Case"""

import logging
from libs.result import Result, Return
from image_studio.app.services.admission_queue import AdmissionQueue
from .dtos import GenerationResponseDTO
from .state_machine import GenerationStateMachine

logger = logging.getLogger(__name__)


class CancelGeneration:
    """
    Use Case: Cancel a pending or processing generation

    The state transition (with its refund) happens first; the queue slot
    is then freed and the in-flight unit of work is told to stop. A
    provider call already in flight finishes and its result is dropped by
    the transition guard.
    """

    def __init__(self, state_machine: GenerationStateMachine, queue: AdmissionQueue):
        self.state_machine = state_machine
        self.queue = queue

    async def execute(self, generation_id: str, requester_id: str) -> Result[GenerationResponseDTO]:
        cancelled = await self.state_machine.cancel(generation_id, requester_id)
        if cancelled.is_err():
            return Return.err(cancelled.error)

        if await self.queue.dequeue(generation_id):
            logger.info(f"Released queue slot of cancelled generation {generation_id}")

        return Return.ok(GenerationResponseDTO.from_entity(cancelled.value))
