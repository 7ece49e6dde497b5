"""HandleProviderCallback Use Case

Applies an asynchronous provider notification (webhook) to a generation.
Providers deliver at least once, so a callback for a generation that is
already terminal is acknowledged without effect.
"""

import logging
from libs.result import Result, Return
from image_studio.app.services.admission_queue import AdmissionQueue
from .dtos import CallbackResultDTO, ProviderCallbackDTO
from .state_machine import GenerationStateMachine

logger = logging.getLogger(__name__)


class HandleProviderCallback:
    """
    Use Case: Complete or fail a generation from a provider callback

    Business Rules:
    1. success -> complete(result_refs); failure -> fail(error) with refund
    2. Terminal generation -> applied=False, balance untouched
    3. A generation that reaches a terminal state here gives up its
       queue slot
    """

    def __init__(self, state_machine: GenerationStateMachine, queue: AdmissionQueue):
        self.state_machine = state_machine
        self.queue = queue

    async def execute(self, command: ProviderCallbackDTO) -> Result[CallbackResultDTO]:
        current = await self.state_machine.get(command.generation_id)
        if current.is_err():
            return Return.err(current.error)

        if current.value.status.is_terminal:
            logger.info(
                f"Ignoring callback for generation {command.generation_id}: "
                f"already {current.value.status.value}"
            )
            return Return.ok(
                CallbackResultDTO(
                    generation_id=command.generation_id,
                    status=current.value.status.value,
                    applied=False,
                )
            )

        if command.success:
            result = await self.state_machine.complete(command.generation_id, command.result_refs)
        else:
            result = await self.state_machine.fail(
                command.generation_id, command.error or "Provider reported a failure"
            )

        if result.is_err():
            # Lost the race against a concurrent transition
            latest = await self.state_machine.get(command.generation_id)
            if latest.is_ok() and latest.value.status.is_terminal:
                return Return.ok(
                    CallbackResultDTO(
                        generation_id=command.generation_id,
                        status=latest.value.status.value,
                        applied=False,
                    )
                )
            return Return.err(result.error)

        await self.queue.dequeue(command.generation_id)
        return Return.ok(
            CallbackResultDTO(
                generation_id=command.generation_id,
                status=result.value.status.value,
                applied=True,
            )
        )
