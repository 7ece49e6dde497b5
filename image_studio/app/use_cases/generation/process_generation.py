"""ProcessGeneration Use Case

The unit of work the admission queue runs for one generation: provider call
with retries, upload of every result, terminal transition.

No database session is held while the provider or storage is working; each
transition opens its own short-lived state machine scope.
"""

import logging
from typing import AsyncContextManager, Awaitable, Callable, List, Optional
from image_studio.app.services.admission_queue import QueueSlot
from image_studio.app.services.image_provider import ImageProvider, ProviderError
from image_studio.app.services.object_storage import ObjectStorage, StorageError
from image_studio.app.services.retry_policy import RetryPolicy
from image_studio.domain.generation import GenerationStatus
from .state_machine import GenerationStateMachine

logger = logging.getLogger(__name__)

StateMachineScope = Callable[[], AsyncContextManager[GenerationStateMachine]]


class ProcessGeneration:
    """
    Use Case: Run one admitted generation to a terminal state

    Flow:
    1. pending -> processing (losing the swap means someone else owns it)
    2. Call the provider; retry transient errors with backoff, stop early
       when the slot is cancelled or the generation left processing
    3. processing -> uploading, store each image
    4. uploading -> completed with the stored references

    Fatal or exhausted provider errors and storage errors end in `fail`,
    which refunds the reservation. INVALID_TRANSITION at any step means
    the generation was cancelled or swept meanwhile; the work is dropped.
    """

    def __init__(
        self,
        state_machine_scope: StateMachineScope,
        provider: ImageProvider,
        storage: ObjectStorage,
        retry_policy: RetryPolicy,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.state_machine_scope = state_machine_scope
        self.provider = provider
        self.storage = storage
        self.retry_policy = retry_policy
        self.sleep = sleep

    async def __call__(self, slot: QueueSlot) -> None:
        await self.execute(slot)

    async def execute(self, slot: QueueSlot) -> None:
        generation_id = slot.generation_id

        async with self.state_machine_scope() as machine:
            started = await machine.advance(generation_id, GenerationStatus.PROCESSING)
        if started.is_err():
            logger.info(
                f"Generation {generation_id} not started: {started.error.code} {started.error.message}"
            )
            return

        generation = started.value
        images = await self._generate_with_retry(
            slot,
            generation.prompt,
            dict(generation.parameters or {}),
            list(generation.input_images or []),
        )
        if images is None:
            return

        if slot.cancelled:
            logger.info(f"Generation {generation_id} cancelled in flight, discarding provider result")
            return

        async with self.state_machine_scope() as machine:
            uploading = await machine.advance(generation_id, GenerationStatus.UPLOADING)
        if uploading.is_err():
            logger.info(
                f"Discarding result of generation {generation_id}: {uploading.error.message}"
            )
            return

        try:
            result_refs = [await self.storage.store(image) for image in images]
        except StorageError as e:
            logger.error(f"Upload of generation {generation_id} failed: {e}")
            await self._fail(generation_id, f"Storage upload failed: {e}")
            return

        async with self.state_machine_scope() as machine:
            completed = await machine.complete(generation_id, result_refs)
        if completed.is_err():
            logger.warning(
                f"Generation {generation_id} could not be completed: {completed.error.message}"
            )

    async def _generate_with_retry(
        self,
        slot: QueueSlot,
        prompt: str,
        parameters: dict,
        input_images: List[str],
    ) -> Optional[List[bytes]]:
        generation_id = slot.generation_id
        attempt = 0

        while True:
            attempt += 1
            slot.attempt = attempt
            async with self.state_machine_scope() as machine:
                recorded = await machine.record_attempt(generation_id, attempt)
            if not recorded:
                logger.info(
                    f"Generation {generation_id} is no longer processing, "
                    f"stopping before attempt {attempt}"
                )
                return None

            try:
                images = await self.provider.generate(prompt, parameters, input_images)
            except ProviderError as e:
                if slot.cancelled:
                    logger.info(f"Generation {generation_id} cancelled, dropping provider error")
                    return None
                if not self.retry_policy.should_retry(attempt, e):
                    logger.error(
                        f"Generation {generation_id} failed on attempt {attempt} "
                        f"({e.category.value}): {e.message}"
                    )
                    await self._fail(generation_id, e.message)
                    return None

                delay_ms = self.retry_policy.next_delay(attempt)
                logger.warning(
                    f"Generation {generation_id} attempt {attempt} failed ({e.category.value}), "
                    f"retrying in {delay_ms}ms"
                )
                if await self._backoff(slot, delay_ms / 1000):
                    logger.info(f"Generation {generation_id} cancelled during backoff")
                    return None
                continue

            if not images:
                await self._fail(generation_id, "Provider returned no images")
                return None
            return images

    async def _backoff(self, slot: QueueSlot, seconds: float) -> bool:
        """Wait before the next attempt; True if the slot got cancelled"""
        if self.sleep is not None:
            await self.sleep(seconds)
            return slot.cancelled
        return await slot.wait_cancelled(seconds)

    async def _fail(self, generation_id: str, message: str) -> None:
        async with self.state_machine_scope() as machine:
            failed = await machine.fail(generation_id, message)
        if failed.is_err():
            logger.info(f"Generation {generation_id} not failed: {failed.error.message}")
