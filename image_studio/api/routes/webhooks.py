"""Provider webhook routes"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from image_studio.api.dependencies import verify_webhook_signature
from image_studio.api.error import raise_client_error
from image_studio.api.schemas.generation_request import ProviderCallbackRequestSchema
from image_studio.app.use_cases.generation import HandleProviderCallback
from image_studio.app.use_cases.generation.dtos import CallbackResultDTO, ProviderCallbackDTO
from image_studio.depends import Services, build_state_machine, get_services, get_session

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/provider",
    response_model=CallbackResultDTO,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(verify_webhook_signature)],
    responses={401: {"description": "Missing or invalid Webhook-Signature"}},
)
async def provider_callback(
    request: ProviderCallbackRequestSchema,
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Apply a provider notification signed with the shared webhook secret.

    Safe to deliver more than once: a callback for a generation that is
    already terminal answers `applied: false` and changes nothing.
    """
    use_case = HandleProviderCallback(
        build_state_machine(session, services.status_tracker),
        services.queue,
    )
    result = await use_case.execute(
        ProviderCallbackDTO(
            generation_id=request.generation_id,
            success=request.success,
            result_refs=request.result_refs,
            error=request.error,
        )
    )
    if result.is_err():
        raise_client_error(result.error)
    return result.value
