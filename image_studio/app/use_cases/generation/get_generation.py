"""GetGeneration Use Case"""

from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.repositories.generation_repository import GenerationRepository
from .dtos import GenerationResponseDTO


class GetGeneration:
    """
    Use Case: Read a generation

    When `requester_id` is given, only the owner may read it.
    """

    def __init__(self, generation_repo: GenerationRepository):
        self.generation_repo = generation_repo

    async def execute(self, generation_id: str, requester_id: str = None) -> Result[GenerationResponseDTO]:
        generation = await self.generation_repo.get_by_id(generation_id)
        if not generation:
            return Return.err(
                Error(
                    code=ErrorCode.GENERATION_NOT_FOUND,
                    message=f"Generation {generation_id} not found",
                )
            )
        if requester_id is not None and generation.user_id != requester_id:
            return Return.err(
                Error(
                    code=ErrorCode.UNAUTHORIZED,
                    message="You do not own this generation",
                    reason=f"generation_id={generation_id}, requester={requester_id}",
                )
            )
        return Return.ok(GenerationResponseDTO.from_entity(generation))
