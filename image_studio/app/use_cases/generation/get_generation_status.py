"""GetGenerationStatus Use Case

Polling endpoint. Serves from the status tracker while it holds a fresh
entry for the requester and falls back to the database otherwise.
A stale entry is refreshed from the database answer.
"""

from typing import Optional
from libs.result import Result, Return
from image_studio.app.services.status_tracker import StatusTracker
from image_studio.domain.generation import GenerationStatus
from .dtos import GenerationStatusDTO
from .get_generation import GetGeneration


class GetGenerationStatus:

    def __init__(self, get_generation: GetGeneration, status_tracker: StatusTracker):
        self.get_generation = get_generation
        self.status_tracker = status_tracker

    async def execute(self, generation_id: str, requester_id: Optional[str] = None) -> Result[GenerationStatusDTO]:
        tracked = self.status_tracker.get_fresh(generation_id)
        if tracked is not None and (requester_id is None or tracked.user_id == requester_id):
            return Return.ok(
                GenerationStatusDTO(
                    generation_id=generation_id,
                    status=tracked.status.value,
                    error=tracked.error,
                    result_refs=list(tracked.result_refs),
                    attempt=tracked.attempt,
                    source="tracker",
                )
            )

        result = await self.get_generation.execute(generation_id, requester_id)
        if result.is_err():
            return Return.err(result.error)

        generation = result.value
        if self.status_tracker.get(generation_id) is not None:
            self.status_tracker.update(
                generation_id,
                status=GenerationStatus(generation.status),
                user_id=generation.user_id,
                error=generation.error,
                result_refs=list(generation.result_refs),
                attempt=generation.attempts,
            )

        return Return.ok(
            GenerationStatusDTO(
                generation_id=generation_id,
                status=generation.status,
                error=generation.error,
                result_refs=generation.result_refs,
                attempt=generation.attempts,
                source="database",
            )
        )
