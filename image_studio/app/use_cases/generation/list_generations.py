"""ListGenerations Use Case"""

from typing import Optional
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.repositories.generation_repository import GenerationRepository
from image_studio.domain.generation import GenerationStatus
from .dtos import GenerationListResponseDTO, GenerationResponseDTO

MAX_LIMIT = 100


class ListGenerations:
    """
    Use Case: List a user's generations, newest first
    """

    def __init__(self, generation_repo: GenerationRepository):
        self.generation_repo = generation_repo

    async def execute(
        self,
        user_id: str,
        status: Optional[GenerationStatus] = None,
        limit: int = 20,
    ) -> Result[GenerationListResponseDTO]:
        if limit < 1 or limit > MAX_LIMIT:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"limit must be between 1 and {MAX_LIMIT}",
                    reason=f"limit={limit}",
                )
            )

        generations = await self.generation_repo.list_by_user(user_id, status=status, limit=limit)
        items = [GenerationResponseDTO.from_entity(generation) for generation in generations]
        return Return.ok(GenerationListResponseDTO(generations=items, total=len(items)))
