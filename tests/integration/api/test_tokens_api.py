"""Integration tests for Token, Queue and Health API endpoints"""

import pytest
from httpx import AsyncClient

USER = {"X-User-Id": "user_tokens_1"}
SERVICE = {"X-Service-Key": "test-service-key"}


class TestTokenAPIIntegration:

    @pytest.mark.asyncio
    async def test_stats_provisions_account_once(self, client: AsyncClient):
        first = await client.get("/api/tokens/stats", headers=USER)
        second = await client.get("/api/tokens/stats", headers=USER)

        assert first.status_code == 200
        assert first.json()["balance"] == 10
        assert second.json()["balance"] == 10
        assert second.json()["free_tokens_granted"] == 10

    @pytest.mark.asyncio
    async def test_purchase_is_idempotent(self, client: AsyncClient):
        await client.get("/api/tokens/stats", headers=USER)
        payload = {
            "user_id": "user_tokens_1",
            "amount": 25,
            "idempotency_key": "payment_evt_1",
            "reason": "Starter pack",
        }

        first = await client.post("/api/tokens/purchase", json=payload, headers=SERVICE)
        replay = await client.post("/api/tokens/purchase", json=payload, headers=SERVICE)

        assert first.status_code == 200
        assert first.json()["balance"] == 35
        assert replay.json()["balance"] == 35
        assert replay.json()["total_purchased"] == 25

    @pytest.mark.asyncio
    async def test_purchase_for_unknown_user(self, client: AsyncClient):
        response = await client.post(
            "/api/tokens/purchase",
            json={"user_id": "nobody", "amount": 5, "idempotency_key": "evt_x"},
            headers=SERVICE,
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_purchase_rejects_non_positive_amount(self, client: AsyncClient):
        response = await client.post(
            "/api/tokens/purchase",
            json={"user_id": "user_tokens_1", "amount": 0, "idempotency_key": "evt_0"},
            headers=SERVICE,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_grant_and_usage_history(self, client: AsyncClient):
        await client.get("/api/tokens/stats", headers=USER)
        await client.post(
            "/api/tokens/grant",
            json={"user_id": "user_tokens_1", "amount": 5, "idempotency_key": "support_1"},
            headers=SERVICE,
        )

        response = await client.get("/api/tokens/usage?action=granted", headers=USER)

        assert response.status_code == 200
        entries = response.json()["entries"]
        assert sorted(entry["amount"] for entry in entries) == [5, 10]

    @pytest.mark.asyncio
    async def test_purchase_requires_service_key(self, client: AsyncClient):
        """
        Given: a provisioned user
        When: purchases are posted without a service key and with a wrong one
        Then: both are refused with 401 and the balance is unchanged
        """
        # Arrange
        await client.get("/api/tokens/stats", headers=USER)
        payload = {"user_id": "user_tokens_1", "amount": 1000, "idempotency_key": "forged_1"}

        # Act
        missing = await client.post("/api/tokens/purchase", json=payload, headers=USER)
        wrong = await client.post(
            "/api/tokens/grant", json=payload, headers={"X-Service-Key": "guess"}
        )

        # Assert
        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert wrong.json()["error"]["code"] == "UNAUTHENTICATED"
        stats = (await client.get("/api/tokens/stats", headers=USER)).json()
        assert stats["balance"] == 10

    @pytest.mark.asyncio
    async def test_credits_refused_when_service_key_not_configured(self, client: AsyncClient, services):
        services.service_api_key = ""

        response = await client.post(
            "/api/tokens/grant",
            json={"user_id": "user_tokens_1", "amount": 5, "idempotency_key": "g_1"},
            headers={"X-Service-Key": ""},
        )

        assert response.status_code == 503


class TestQueueAndHealthIntegration:

    @pytest.mark.asyncio
    async def test_queue_stats(self, client: AsyncClient):
        response = await client.get("/api/queue/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["active"] == 0
        assert data["capacity"] == 2

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["workers_started"] is True
