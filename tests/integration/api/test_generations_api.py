"""Integration tests for the Generation API endpoints"""

import json

import pytest
from httpx import AsyncClient

from image_studio.adapter.services.image_provider import MockImageProvider
from image_studio.api.dependencies import sign_payload
from image_studio.app.services.image_provider import ProviderErrorCategory
from image_studio.app.services.rate_limiter import InMemoryRateLimiter
from image_studio.domain.generation import GenerationStatus

USER = {"X-User-Id": "user_api_1"}
OTHER = {"X-User-Id": "user_api_2"}


async def post_callback(client: AsyncClient, payload: dict, secret: str = "test-webhook-secret", signature=None):
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    if signature is None:
        signature = sign_payload(secret, body)
    if signature:
        headers["Webhook-Signature"] = signature
    return await client.post("/api/webhooks/provider", content=body, headers=headers)


async def create(client: AsyncClient, headers=USER, **body):
    payload = {"prompt": "studio photo of a leather bag"}
    payload.update(body)
    return await client.post("/api/generations", json=payload, headers=headers)


class TestGenerationAPIIntegration:
    """Integration test suite for Generation API endpoints"""

    @pytest.mark.asyncio
    async def test_create_generation_and_poll_to_completion(self, client: AsyncClient, services):
        """New user gets the signup bonus, pays 3 tokens and receives one image"""
        # Act
        response = await create(client)

        # Assert
        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "pending"
        assert data["tokens_reserved"] == 3
        assert data["user_id"] == "user_api_1"

        await services.queue.join()

        status_response = await client.get(f"/api/generations/{data['id']}/status", headers=USER)
        assert status_response.status_code == 200
        status_data = status_response.json()
        assert status_data["status"] == "completed"
        assert len(status_data["result_refs"]) == 1
        assert status_data["result_refs"][0].startswith("/media/")

        detail = (await client.get(f"/api/generations/{data['id']}", headers=USER)).json()
        assert detail["tokens_used"] == 3
        assert detail["completed_at"] is not None

        stats = (await client.get("/api/tokens/stats", headers=USER)).json()
        assert stats["balance"] == 7
        assert stats["free_tokens_granted"] == 10
        assert stats["total_used"] == 3

    @pytest.mark.asyncio
    async def test_missing_user_header(self, client: AsyncClient):
        response = await client.post("/api/generations", json={"prompt": "a cat"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_blank_prompt_is_rejected(self, client: AsyncClient):
        response = await create(client, prompt="   ")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_prompt_too_long(self, client: AsyncClient):
        response = await create(client, prompt="x" * 501)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_model(self, client: AsyncClient):
        response = await create(client, parameters={"model": "not-a-model"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_insufficient_tokens(self, client: AsyncClient):
        # gpt-4-vision-enhanced at ultra costs 14, the signup bonus is 10
        response = await create(
            client, parameters={"model": "gpt-4-vision-enhanced", "quality": "ultra"}
        )

        assert response.status_code == 402
        assert response.json()["error"]["code"] == "INSUFFICIENT_TOKENS"
        listing = (await client.get("/api/generations", headers=USER)).json()
        assert listing["total"] == 0

    @pytest.mark.asyncio
    async def test_rate_limit_returns_retry_after(self, client: AsyncClient, services):
        services.rate_limiter = InMemoryRateLimiter(max_requests=1, window_ms=60000)

        first = await create(client)
        await services.queue.join()
        second = await create(client)

        assert first.status_code == 202
        assert second.status_code == 429
        assert second.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert int(second.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_refused_for_tokens_does_not_consume_rate_window(self, client: AsyncClient, services):
        services.rate_limiter = InMemoryRateLimiter(max_requests=1, window_ms=60000)

        refused = await create(
            client, parameters={"model": "gpt-4-vision-enhanced", "quality": "ultra"}
        )
        accepted = await create(client)

        assert refused.status_code == 402
        assert accepted.status_code == 202
        await services.queue.join()

    @pytest.mark.asyncio
    async def test_estimate(self, client: AsyncClient):
        response = await client.post(
            "/api/generations/estimate", json={"model": "dall-e-3-hd", "quality": "high"}
        )

        assert response.status_code == 200
        assert response.json()["estimated_tokens"] == 8

    @pytest.mark.asyncio
    async def test_other_user_cannot_read_or_cancel(self, client: AsyncClient, services):
        generation_id = (await create(client)).json()["id"]
        await services.queue.join()

        read = await client.get(f"/api/generations/{generation_id}", headers=OTHER)
        polled = await client.get(f"/api/generations/{generation_id}/status", headers=OTHER)
        cancel = await client.post(f"/api/generations/{generation_id}/cancel", headers=OTHER)

        assert read.status_code == 403
        assert polled.status_code == 403
        assert cancel.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_generation(self, client: AsyncClient):
        response = await client.get("/api/generations/does-not-exist", headers=USER)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "GENERATION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_cancel_completed_generation_conflicts(self, client: AsyncClient, services):
        generation_id = (await create(client)).json()["id"]
        await services.queue.join()

        response = await client.post(f"/api/generations/{generation_id}/cancel", headers=USER)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_failed_generation_can_be_retried(self, client: AsyncClient, services):
        """A fatal provider error refunds; the retry is a new generation"""
        services.provider = MockImageProvider(failures=1, failure_category=ProviderErrorCategory.VALIDATION)
        original = (await create(client)).json()
        await services.queue.join()

        failed = (await client.get(f"/api/generations/{original['id']}", headers=USER)).json()
        assert failed["status"] == "failed"
        assert failed["tokens_used"] == 0

        retry = await client.post(f"/api/generations/{original['id']}/retry", headers=USER)
        await services.queue.join()

        assert retry.status_code == 202
        retried = retry.json()
        assert retried["id"] != original["id"]
        assert retried["retry_count"] == 1
        assert retried["retried_from_id"] == original["id"]

        final = (await client.get(f"/api/generations/{retried['id']}", headers=USER)).json()
        assert final["status"] == "completed"
        listing = (await client.get("/api/generations?status=failed", headers=USER)).json()
        assert [item["id"] for item in listing["generations"]] == [original["id"]]

        stats = (await client.get("/api/tokens/stats", headers=USER)).json()
        assert stats["balance"] == 7

    @pytest.mark.asyncio
    async def test_retry_of_completed_generation_conflicts(self, client: AsyncClient, services):
        generation_id = (await create(client)).json()["id"]
        await services.queue.join()

        response = await client.post(f"/api/generations/{generation_id}/retry", headers=USER)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_limit_validation(self, client: AsyncClient):
        response = await client.get("/api/generations?limit=101", headers=USER)

        assert response.status_code == 400


class TestProviderWebhookIntegration:

    @pytest.mark.asyncio
    async def test_callback_on_cancelled_generation_is_noop(
        self, client: AsyncClient, services, state_machine, create_account
    ):
        """Cancel refunds; a late success callback answers applied=false"""
        # Arrange - a generation held in processing outside the queue
        await create_account("user_api_1", 5)
        generation_id = (await state_machine.create("user_api_1", "a cat", {}, 3)).value.id
        await state_machine.advance(generation_id, GenerationStatus.PROCESSING)

        # Act
        cancel = await client.post(f"/api/generations/{generation_id}/cancel", headers=USER)
        callback = await post_callback(
            client,
            {"generation_id": generation_id, "success": True, "result_refs": ["/media/late.png"]},
        )

        # Assert
        assert cancel.status_code == 200
        assert cancel.json()["status"] == "cancelled"
        assert callback.status_code == 200
        assert callback.json() == {
            "generation_id": generation_id,
            "status": "cancelled",
            "applied": False,
        }
        stats = (await client.get("/api/tokens/stats", headers=USER)).json()
        assert stats["balance"] == 5

    @pytest.mark.asyncio
    async def test_callback_for_unknown_generation(self, client: AsyncClient):
        response = await post_callback(client, {"generation_id": "missing", "success": False})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_signed_success_callback_completes(
        self, client: AsyncClient, services, state_machine, create_account
    ):
        await create_account("user_api_1", 5)
        generation_id = (await state_machine.create("user_api_1", "a cat", {}, 3)).value.id
        await state_machine.advance(generation_id, GenerationStatus.PROCESSING)
        body = {"generation_id": generation_id, "success": True, "result_refs": ["/media/ok.png"]}

        response = await post_callback(
            client, body, signature="sha256=" + sign_payload("test-webhook-secret", json.dumps(body).encode())
        )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["applied"] is True

    @pytest.mark.asyncio
    async def test_unsigned_callback_is_rejected(
        self, client: AsyncClient, services, state_machine, create_account
    ):
        """
        Given: another user's generation in processing
        When: a callback without Webhook-Signature claims it succeeded
        Then: 401, and the generation is still processing with no results
        """
        # Arrange
        await create_account("user_api_1", 5)
        generation_id = (await state_machine.create("user_api_1", "a cat", {}, 3)).value.id
        await state_machine.advance(generation_id, GenerationStatus.PROCESSING)

        # Act
        response = await post_callback(
            client,
            {"generation_id": generation_id, "success": True, "result_refs": ["https://evil.example/x.png"]},
            signature="",
        )

        # Assert
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHENTICATED"
        status = (await client.get(f"/api/generations/{generation_id}/status", headers=USER)).json()
        assert status["status"] == "processing"
        assert status["result_refs"] == []

    @pytest.mark.asyncio
    async def test_callback_signed_with_wrong_secret_is_rejected(
        self, client: AsyncClient, services, state_machine, create_account
    ):
        await create_account("user_api_1", 5)
        generation_id = (await state_machine.create("user_api_1", "a cat", {}, 3)).value.id
        await state_machine.advance(generation_id, GenerationStatus.PROCESSING)

        response = await post_callback(
            client,
            {"generation_id": generation_id, "success": False, "error": "forged"},
            secret="not-the-secret",
        )

        assert response.status_code == 401
        detail = (await client.get(f"/api/generations/{generation_id}", headers=USER)).json()
        assert detail["status"] == "processing"
        assert detail["error"] is None

    @pytest.mark.asyncio
    async def test_callbacks_refused_when_secret_not_configured(self, client: AsyncClient, services):
        services.webhook_secret = ""

        response = await post_callback(client, {"generation_id": "any", "success": False})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_analytics_summarize_recent_generations(self, client: AsyncClient, services):
        """Two completed generations on different models show up in the 24h summary"""
        # Arrange
        assert (await create(client)).status_code == 202
        assert (await create(client, parameters={"model": "dall-e-3-hd"})).status_code == 202
        await services.queue.join()

        # Act
        response = await client.get(
            "/api/generations/analytics",
            params={"timeframe": "24h"},
            headers={"X-Service-Key": "test-service-key"},
        )

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["timeframe"] == "24h"
        assert data["total"] == 2
        assert data["by_status"]["completed"] == 2
        assert data["by_status"]["failed"] == 0
        assert data["by_model"] == {"dall-e-3-standard": 1, "dall-e-3-hd": 1}
        assert data["average_processing_time_ms"] is not None
        assert data["success_rate"] == 100.0

    @pytest.mark.asyncio
    async def test_analytics_require_service_key(self, client: AsyncClient):
        missing = await client.get("/api/generations/analytics")
        user_only = await client.get("/api/generations/analytics", headers=USER)

        assert missing.status_code == 401
        assert user_only.status_code == 401
        assert missing.json()["error"]["code"] == "UNAUTHENTICATED"

    @pytest.mark.asyncio
    async def test_analytics_reject_unknown_timeframe(self, client: AsyncClient):
        response = await client.get(
            "/api/generations/analytics",
            params={"timeframe": "90d"},
            headers={"X-Service-Key": "test-service-key"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
