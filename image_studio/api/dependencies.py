"""Request-scoped dependencies"""

import hashlib
import hmac
from typing import Optional
from fastapi import Depends, Header, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession
from libs.result import Error
from image_studio.adapter.repositories import SqlAlchemyUserAccountRepository
from image_studio.adapter.services import SqlAlchemyUnitOfWork
from image_studio.app.errors import ErrorCode
from image_studio.app.use_cases.tokens.provision_account import ProvisionAccount
from image_studio.depends import Services, build_token_ledger, get_services, get_session
from image_studio.api.error import ClientError, raise_client_error


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Caller identity as supplied by the gateway in front of the service

    The service never authenticates; it only authorizes ownership.
    """
    if not x_user_id or not x_user_id.strip():
        raise ClientError(
            Error(code=ErrorCode.UNAUTHORIZED, message="Missing X-User-Id header"),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return x_user_id.strip()


async def get_provisioned_user_id(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
) -> str:
    """Caller identity, with the token account created on first sight"""
    use_case = ProvisionAccount(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserAccountRepository(session),
        build_token_ledger(session),
        signup_tokens=services.signup_tokens,
    )
    result = await use_case.execute(user_id)
    if result.is_err():
        raise_client_error(result.error)
    return user_id


def sign_payload(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of a raw request body, as carried by `Webhook-Signature`"""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _unauthenticated(message: str) -> ClientError:
    return ClientError(
        Error(code=ErrorCode.UNAUTHENTICATED, message=message),
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


def _not_configured(setting: str) -> ClientError:
    return ClientError(
        Error(
            code=ErrorCode.NOT_CONFIGURED,
            message="Endpoint is not configured",
            reason=f"{setting} is empty",
        ),
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


async def verify_webhook_signature(
    request: Request,
    webhook_signature: Optional[str] = Header(default=None, alias="Webhook-Signature"),
    services: Services = Depends(get_services),
) -> None:
    """
    Reject provider callbacks whose body was not signed with WEBHOOK_SECRET

    The header holds the hex digest, optionally prefixed with "sha256=".
    """
    if not services.webhook_secret:
        raise _not_configured("WEBHOOK_SECRET")
    if not webhook_signature:
        raise _unauthenticated("Missing webhook signature")

    provided = webhook_signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]
    expected = sign_payload(services.webhook_secret, await request.body())
    if not hmac.compare_digest(expected.encode(), provided.lower().encode()):
        raise _unauthenticated("Invalid webhook signature")


async def require_service_key(
    x_service_key: Optional[str] = Header(default=None, alias="X-Service-Key"),
    services: Services = Depends(get_services),
) -> None:
    """Internal callers only (payment processor, support tooling)"""
    if not services.service_api_key:
        raise _not_configured("SERVICE_API_KEY")
    if not x_service_key or not hmac.compare_digest(
        x_service_key.encode(), services.service_api_key.encode()
    ):
        raise _unauthenticated("Invalid service key")
