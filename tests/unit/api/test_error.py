"""Unit tests for API error mapping and request signing"""

import hashlib
import hmac

import pytest

from libs.result import Error
from image_studio.api.dependencies import sign_payload
from image_studio.api.error import ClientError, raise_client_error, status_for
from image_studio.app.errors import ErrorCode


@pytest.mark.parametrize("code,status_code", [
    (ErrorCode.INSUFFICIENT_TOKENS, 402),
    (ErrorCode.RATE_LIMIT_EXCEEDED, 429),
    (ErrorCode.QUEUE_FULL, 503),
    (ErrorCode.GENERATION_NOT_FOUND, 404),
    (ErrorCode.UNAUTHORIZED, 403),
    (ErrorCode.UNAUTHENTICATED, 401),
    (ErrorCode.NOT_CONFIGURED, 503),
    (ErrorCode.INVALID_TRANSITION, 409),
    (ErrorCode.VALIDATION_ERROR, 400),
    (ErrorCode.TRANSITION_FAILED, 500),
    ("SOMETHING_ELSE", 400),
])
def test_status_for(code, status_code):
    assert status_for(Error(code=code, message="x")) == status_code


def test_rate_limit_carries_retry_after_header():
    error = Error(code=ErrorCode.RATE_LIMIT_EXCEEDED, message="slow down", reason="retry_after_ms=2500")

    with pytest.raises(ClientError) as exc_info:
        raise_client_error(error)

    assert exc_info.value.status_code == 429
    assert exc_info.value.headers == {"Retry-After": "3"}


def test_other_errors_have_no_headers():
    with pytest.raises(ClientError) as exc_info:
        raise_client_error(Error(code=ErrorCode.QUEUE_FULL, message="full"))

    assert exc_info.value.headers is None


def test_sign_payload_matches_reference_hmac():
    body = b'{"generation_id": "gen_1", "success": true}'

    assert sign_payload("secret", body) == hmac.new(b"secret", body, hashlib.sha256).hexdigest()
    assert sign_payload("secret", body) != sign_payload("other", body)
