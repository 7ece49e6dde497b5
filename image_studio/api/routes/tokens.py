"""Token API Routes"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from image_studio.api.dependencies import (
    get_current_user_id,
    get_provisioned_user_id,
    require_service_key,
)
from image_studio.api.error import raise_client_error
from image_studio.api.schemas.token_request import AddTokensRequestSchema
from image_studio.adapter.repositories import SqlAlchemyUsageEntryRepository
from image_studio.app.use_cases.tokens import (
    AddTokensCommandDTO,
    GetTokenStats,
    GrantTokens,
    ListUsageHistory,
    PurchaseTokens,
    TokenStatsDTO,
    UsageHistoryResponseDTO,
)
from image_studio.depends import build_token_ledger, get_session
from image_studio.domain.usage_entry import UsageAction

router = APIRouter(prefix="/tokens", tags=["Tokens"])


@router.get(
    "/stats",
    response_model=TokenStatsDTO,
    status_code=status.HTTP_200_OK,
)
async def get_token_stats(
    user_id: str = Depends(get_provisioned_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Current balance and lifetime counters of the caller.
    """
    use_case = GetTokenStats(build_token_ledger(session))
    result = await use_case.execute(user_id)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.get(
    "/usage",
    response_model=UsageHistoryResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_usage(
    action: Optional[UsageAction] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Most recent usage ledger entries of the caller.
    """
    use_case = ListUsageHistory(SqlAlchemyUsageEntryRepository(session))
    result = await use_case.execute(user_id, limit=limit, action=action)
    if result.is_err():
        raise_client_error(result.error)
    return result.value


def _to_command(request: AddTokensRequestSchema) -> AddTokensCommandDTO:
    return AddTokensCommandDTO(
        user_id=request.user_id,
        amount=request.amount,
        idempotency_key=request.idempotency_key,
        reason=request.reason,
    )


@router.post(
    "/purchase",
    response_model=TokenStatsDTO,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_service_key)],
    responses={401: {"description": "Invalid service key"}, 404: {"description": "Unknown user"}},
)
async def purchase_tokens(
    request: AddTokensRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Credit purchased tokens. Internal: requires the X-Service-Key header.

    Replaying the same `idempotency_key` does not credit twice.
    """
    use_case = PurchaseTokens(build_token_ledger(session))
    result = await use_case.execute(_to_command(request))
    if result.is_err():
        raise_client_error(result.error)
    return result.value


@router.post(
    "/grant",
    response_model=TokenStatsDTO,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_service_key)],
    responses={401: {"description": "Invalid service key"}, 404: {"description": "Unknown user"}},
)
async def grant_tokens(
    request: AddTokensRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Credit free tokens. Internal: requires the X-Service-Key header.
    Idempotent by `idempotency_key`.
    """
    use_case = GrantTokens(build_token_ledger(session))
    result = await use_case.execute(_to_command(request))
    if result.is_err():
        raise_client_error(result.error)
    return result.value
