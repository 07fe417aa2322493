"""Integration tests for Credit API endpoints"""

import pytest
from httpx import AsyncClient

from src.domain.credit_policy import SubscriptionTier, UserType
from src.domain.user_profile import UserProfile


async def add_user(db_session, user_id, user_type=UserType.COUPLE, tier=SubscriptionTier.FREE):
    db_session.add(UserProfile(id=user_id, user_type=user_type, subscription_tier=tier))
    await db_session.commit()


class TestCreditsAPIIntegration:
    """Integration test suite for Credit API endpoints"""

    @pytest.mark.asyncio
    async def test_initialize_and_get(self, client: AsyncClient, db_session):
        """POST /initialize creates the ledger; GET returns it"""
        await add_user(db_session, "api_user_1")

        response = await client.post("/api/credits/api_user_1/initialize")
        assert response.status_code == 200
        assert response.json()["refreshable_credits"] == 15

        response = await client.get("/api/credits/api_user_1")
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "api_user_1"
        assert data["available_credits"] == 15
        assert data["subscription_tier"] == "free"

    @pytest.mark.asyncio
    async def test_initialize_with_explicit_plan(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_2", user_type=UserType.PLANNER)

        response = await client.post(
            "/api/credits/api_user_2/initialize",
            json={"user_type": "planner", "subscription_tier": "enterprise"},
        )

        assert response.status_code == 200
        assert response.json()["refreshable_credits"] == 1000

    @pytest.mark.asyncio
    async def test_initialize_unknown_user_is_404(self, client: AsyncClient):
        response = await client.post("/api/credits/ghost/initialize")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_get_without_ledger_is_404(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_3")

        response = await client.get("/api/credits/api_user_3")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "LEDGER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_add_credits_and_history(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_4")

        response = await client.post(
            "/api/credits/api_user_4/add",
            json={"amount": 40, "type": "purchased", "metadata": {"order_id": "ord_1"}},
        )
        assert response.status_code == 200
        assert response.json()["bonus_credits"] == 40

        response = await client.get("/api/credits/api_user_4/history", params={"limit": 10})
        assert response.status_code == 200
        history = response.json()
        assert history["total"] == 1
        txn = history["transactions"][0]
        assert txn["type"] == "purchased"
        assert txn["amount"] == 40
        assert txn["feature"] == "bonus"
        assert txn["metadata"] == {"order_id": "ord_1"}

    @pytest.mark.asyncio
    async def test_add_non_positive_amount_is_422(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_5")

        response = await client.post("/api/credits/api_user_5/add", json={"amount": 0})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_summary(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_6", tier=SubscriptionTier.PREMIUM)
        await client.post("/api/credits/api_user_6/initialize")

        response = await client.get("/api/credits/api_user_6/summary")

        assert response.status_code == 200
        summary = response.json()
        assert summary["remaining_credits"] == 60
        assert summary["usage_percentage"] == 0.0
        assert summary["is_low"] is False
        assert summary["subscription_info"]["monthly_credits"] == 60
        assert summary["feature_costs"]["vendor_suggestions"] == 2

    @pytest.mark.asyncio
    async def test_feature_access(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_7")

        allowed = await client.get("/api/credits/api_user_7/features/todo_generation")
        denied = await client.get("/api/credits/api_user_7/features/integrated_planning")
        unknown = await client.get("/api/credits/api_user_7/features/teleportation")

        assert allowed.json() == {"user_id": "api_user_7", "feature": "todo_generation", "has_access": True, "cost": 2}
        assert denied.json()["has_access"] is False
        assert unknown.status_code == 422

    @pytest.mark.asyncio
    async def test_reset_and_subscription_change(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_8")
        await client.post("/api/credits/api_user_8/initialize")

        response = await client.post(
            "/api/credits/api_user_8/subscription",
            json={"user_type": "couple", "subscription_tier": "pro"},
        )
        assert response.status_code == 200
        assert response.json()["subscription_tier"] == "pro"
        assert response.json()["refreshable_credits"] == 15

        response = await client.post("/api/credits/api_user_8/reset")
        assert response.status_code == 200
        assert response.json()["refreshable_credits"] == 150
        assert response.json()["previous_refreshable_credits"] == 15

    @pytest.mark.asyncio
    async def test_invalid_subscription_is_400(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_9")

        response = await client.post(
            "/api/credits/api_user_9/subscription",
            json={"user_type": "couple", "subscription_tier": "enterprise"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SUBSCRIPTION"

    @pytest.mark.asyncio
    async def test_reset_without_ledger_is_404(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_10")

        response = await client.post("/api/credits/api_user_10/reset")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_scheduled_credit_refresh(self, client: AsyncClient, db_session):
        await add_user(db_session, "api_user_11")
        await client.post("/api/credits/api_user_11/initialize")

        response = await client.post("/api/scheduled-tasks/credit-refresh", json={"batch_size": 50})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["skipped"] == 1
        assert data["has_more"] is False

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
