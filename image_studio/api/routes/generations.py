"""Generation API Routes

FastAPI routes for the generation lifecycle. The caller is identified by
the X-User-Id header set by the gateway.
"""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from image_studio.api.dependencies import get_current_user_id, get_provisioned_user_id, require_service_key
from image_studio.api.error import raise_client_error
from image_studio.api.schemas.generation_request import CreateGenerationRequestSchema
from image_studio.adapter.repositories import SqlAlchemyGenerationRepository
from image_studio.app.use_cases.generation.dtos import (
    CreateGenerationCommandDTO,
    EstimateResponseDTO,
    GenerationAnalyticsDTO,
    GenerationListResponseDTO,
    GenerationParametersDTO,
    GenerationResponseDTO,
    GenerationStatusDTO,
)
from image_studio.app.use_cases.generation import (
    CancelGeneration,
    CreateGeneration,
    GetGeneration,
    GetGenerationAnalytics,
    GetGenerationStatus,
    ListGenerations,
    RetryGeneration,
)
from image_studio.depends import (
    Services,
    build_state_machine,
    build_token_ledger,
    get_services,
    get_session,
)
from image_studio.domain.generation import GenerationStatus

router = APIRouter(prefix="/generations", tags=["Generations"])

ERROR_EXAMPLE = {
    "application/json": {
        "example": {"error": {"code": "INSUFFICIENT_TOKENS", "message": "Insufficient tokens. Required: 3, Available: 1"}}
    }
}


@router.post(
    "",
    response_model=GenerationResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        402: {"description": "Insufficient tokens", "content": ERROR_EXAMPLE},
        429: {"description": "Rate limit exceeded"},
        503: {"description": "Queue is full"},
        400: {"description": "Validation error"},
    },
)
async def create_generation(
    request: CreateGenerationRequestSchema,
    user_id: str = Depends(get_provisioned_user_id),
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Submit a new generation.

    The estimated cost is reserved immediately and the generation is
    queued. Poll `GET /generations/{id}/status` for progress.

    **Returns:**
    - 202: Generation accepted (status `pending`)
    - 402: Not enough tokens
    - 429: Too many generations in the rate-limit window
    - 503: Queue at capacity
    """
    command = CreateGenerationCommandDTO(
        user_id=user_id,
        prompt=request.prompt,
        parameters=request.parameters,
        input_images=request.input_images,
    )

    use_case = CreateGeneration(
        build_state_machine(session, services.status_tracker),
        build_token_ledger(session),
        services.estimator,
        services.rate_limiter,
        services.queue,
        services.processor,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise_client_error(result.error)

    return result.value


@router.post(
    "/estimate",
    response_model=EstimateResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def estimate_generation(
    parameters: GenerationParametersDTO,
    services: Services = Depends(get_services),
):
    """
    Preview the tokens a generation with these parameters would reserve.
    """
    result = await services.estimator.execute(parameters)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.get(
    "",
    response_model=GenerationListResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_generations(
    status_filter: Optional[GenerationStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    List the caller's generations, newest first.
    """
    use_case = ListGenerations(SqlAlchemyGenerationRepository(session))
    result = await use_case.execute(user_id, status=status_filter, limit=limit)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.get(
    "/analytics",
    response_model=GenerationAnalyticsDTO,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_service_key)],
    responses={401: {"description": "Missing or invalid service key"}},
)
async def get_generation_analytics(
    timeframe: Literal["24h", "7d", "30d", "all"] = Query(default="7d"),
    session: AsyncSession = Depends(get_session),
):
    """
    Counts by status and model, average processing time and success rate
    for generations created within the timeframe.

    Internal: requires the X-Service-Key header.
    """
    use_case = GetGenerationAnalytics(SqlAlchemyGenerationRepository(session))
    result = await use_case.execute(timeframe)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.get(
    "/{generation_id}",
    response_model=GenerationResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def get_generation(
    generation_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Read a generation owned by the caller.

    **Returns:**
    - 200: Generation
    - 403: Generation belongs to another user
    - 404: Unknown generation
    """
    use_case = GetGeneration(SqlAlchemyGenerationRepository(session))
    result = await use_case.execute(generation_id, requester_id=user_id)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.get(
    "/{generation_id}/status",
    response_model=GenerationStatusDTO,
    status_code=status.HTTP_200_OK,
)
async def get_generation_status(
    generation_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Lightweight status for polling; served from memory when possible.
    """
    use_case = GetGenerationStatus(
        GetGeneration(SqlAlchemyGenerationRepository(session)),
        services.status_tracker,
    )
    result = await use_case.execute(generation_id, requester_id=user_id)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.post(
    "/{generation_id}/cancel",
    response_model=GenerationResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        403: {"description": "Not the owner"},
        404: {"description": "Unknown generation"},
        409: {"description": "Generation can no longer be cancelled"},
    },
)
async def cancel_generation(
    generation_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Cancel a pending or processing generation and refund its tokens.

    Cancelling an already cancelled generation returns it unchanged.
    """
    use_case = CancelGeneration(
        build_state_machine(session, services.status_tracker),
        services.queue,
    )
    result = await use_case.execute(generation_id, user_id)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.post(
    "/{generation_id}/retry",
    response_model=GenerationResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        402: {"description": "Insufficient tokens"},
        403: {"description": "Not the owner"},
        404: {"description": "Unknown generation"},
        409: {"description": "Only failed generations can be retried"},
    },
)
async def retry_generation(
    generation_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Retry a failed generation. Returns the NEW generation; the failed one
    is kept unchanged.
    """
    use_case = RetryGeneration(
        build_state_machine(session, services.status_tracker),
        services.queue,
        services.processor,
    )
    result = await use_case.execute(generation_id, user_id)
    if result.is_err():
        raise_client_error(result.error)
    return result.value
