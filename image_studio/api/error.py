"""API error mapping

Use cases return `Result` errors; routes turn them into ClientError, which
the application's exception handler renders as
{"error": {"code": ..., "message": ...}}.
"""

from typing import Dict, Optional
from fastapi import status
from libs.result import Error
from image_studio.app.errors import ErrorCode

STATUS_BY_CODE: Dict[str, int] = {
    ErrorCode.INSUFFICIENT_TOKENS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.QUEUE_FULL: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.ALREADY_QUEUED: status.HTTP_409_CONFLICT,
    ErrorCode.GENERATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_CONFIGURED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.STORAGE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


class ClientError(Exception):
    def __init__(
        self,
        error: Error,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code
        self.headers = headers


def status_for(error: Error) -> int:
    if error.code in STATUS_BY_CODE:
        return STATUS_BY_CODE[error.code]
    if error.code.endswith("_FAILED"):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def raise_client_error(error: Error) -> None:
    headers = None
    if error.code == ErrorCode.RATE_LIMIT_EXCEEDED and error.reason:
        # reason carries "retry_after_ms=<n>"
        _, _, retry_after_ms = error.reason.partition("=")
        if retry_after_ms.isdigit():
            headers = {"Retry-After": str(int(retry_after_ms) // 1000 + 1)}
    raise ClientError(error, status_code=status_for(error), headers=headers)
