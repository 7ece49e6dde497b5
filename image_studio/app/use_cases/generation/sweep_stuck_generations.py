"""SweepStuckGenerations Use Case

Fails and refunds generations left in a non-terminal state past a timeout,
so no reservation is held indefinitely after a crash or a lost job.
"""

import logging
import time
from datetime import timedelta
from typing import List, Optional
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.repositories.generation_repository import GenerationRepository
from image_studio.app.services.admission_queue import AdmissionQueue
from image_studio.domain.base import utcnow
from image_studio.domain.generation import GenerationStatus
from .dtos import SweepResultDTO
from .state_machine import GenerationStateMachine

logger = logging.getLogger(__name__)

NON_TERMINAL_STATUSES = (
    GenerationStatus.PENDING,
    GenerationStatus.PROCESSING,
    GenerationStatus.UPLOADING,
)


class SweepStuckGenerations:
    """
    Use Case: Stuck-job sweep

    Business Rules:
    1. Candidates: pending, processing or uploading with no transition
       for longer than timeout_seconds, oldest first
    2. Generations still held by this process's queue are skipped
    3. Each candidate goes through state machine `fail`, so the refund
       is atomic with the transition and a concurrent finisher wins cleanly
    """

    def __init__(
        self,
        generation_repo: GenerationRepository,
        state_machine: GenerationStateMachine,
        queue: Optional[AdmissionQueue] = None,
        timeout_seconds: int = 300,
        batch_size: int = 100,
    ):
        self.generation_repo = generation_repo
        self.state_machine = state_machine
        self.queue = queue
        self.timeout_seconds = timeout_seconds
        self.batch_size = batch_size

    async def execute(self) -> Result[SweepResultDTO]:
        start_time = time.time()
        cutoff = utcnow() - timedelta(seconds=self.timeout_seconds)

        try:
            candidates = await self.generation_repo.list_by_status(
                NON_TERMINAL_STATUSES,
                limit=self.batch_size,
                updated_before=cutoff,
            )
            candidate_ids = [generation.id for generation in candidates]
        except Exception as e:
            logger.error(f"Stuck generation sweep failed: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.SWEEP_FAILED,
                    message="Failed to load stuck generations",
                    reason=str(e),
                )
            )

        failed_ids: List[str] = []
        skipped = 0

        for generation_id in candidate_ids:
            if self.queue is not None and self.queue.is_queued(generation_id):
                skipped += 1
                continue

            result = await self.state_machine.fail(
                generation_id,
                f"Generation timed out after {self.timeout_seconds} seconds",
            )
            if result.is_err():
                skipped += 1
                logger.info(f"Sweep skipped generation {generation_id}: {result.error.code}")
                continue

            failed_ids.append(generation_id)
            logger.warning(f"Swept stuck generation {generation_id}, tokens refunded")

        execution_time_ms = int((time.time() - start_time) * 1000)
        if candidate_ids:
            logger.info(
                f"Sweep complete: {len(failed_ids)} failed, {skipped} skipped "
                f"out of {len(candidate_ids)} in {execution_time_ms}ms"
            )

        return Return.ok(
            SweepResultDTO(
                total_checked=len(candidate_ids),
                failed_count=len(failed_ids),
                skipped_count=skipped,
                failed_ids=failed_ids,
                execution_time_ms=execution_time_ms,
            )
        )
