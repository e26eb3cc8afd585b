"""Unit tests for API endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from orgbilling.api.routes.billing import get_policy
from orgbilling.billing.plans import BillingPolicy
from orgbilling.models import UsageRecord


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_liveness_check(self, client):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    async def test_readiness_reports_database(self, client):
        with patch("orgbilling.database.check_db_connection", new_callable=AsyncMock) as mock_db:
            mock_db.return_value = False

            response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready", "checks": {"database": False}}


class TestOrganizationBillingEndpoints:
    """Tests for organization billing endpoints."""

    async def test_billing_data(self, client, make_organization):
        org, _ = await make_organization(members=[(3, 10), (9, 10)], seats=5)

        response = await client.get(f"/api/v1/organizations/{org.id}/billing")

        assert response.status_code == 200
        data = response.json()
        assert data["total_usage_limit"] == 200.0
        assert data["used_seats"] == 2
        assert [m["current_usage"] for m in data["members"]] == [9.0, 3.0]

    async def test_billing_summary(self, client, make_organization):
        org, _ = await make_organization(
            members=[(12.345, 20), (0, 5), (50, 40), (3, 10)],
            seats=10,
        )

        response = await client.get(f"/api/v1/organizations/{org.id}/billing/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["usage"]["total"] == 65.35
        assert data["seats"] == {"total": 10, "used": 4, "available": 6}
        assert data["alerts"]["members_over_limit"] == 1
        assert len(data["top_users"]) == 4

    async def test_unknown_organization_is_404(self, client):
        response = await client.get("/api/v1/organizations/nope/billing/summary")

        assert response.status_code == 404

    async def test_organization_without_subscription_is_404(self, client, make_organization):
        org, _ = await make_organization(members=[(1, 10)], plan=None)

        response = await client.get(f"/api/v1/organizations/{org.id}/billing")

        assert response.status_code == 404


class TestUsageLimitEndpoint:
    """Tests for updating a member's usage limit."""

    async def test_update_limit(self, client, test_db, make_organization):
        org, (member,) = await make_organization(members=[(2, 10)])

        response = await client.put(
            f"/api/v1/organizations/{org.id}/members/{member.id}/usage-limit",
            json={"limit": 30, "admin_user_id": "admin-1"},
        )

        assert response.status_code == 200
        assert response.json()["limit"] == 30.0

        test_db.expire_all()
        record = (
            await test_db.execute(select(UsageRecord).where(UsageRecord.user_id == member.id))
        ).scalar_one()
        assert float(record.current_usage_limit) == 30.0
        assert record.usage_limit_set_by == "admin-1"

    async def test_below_floor_is_400(self, client, make_organization):
        org, (member,) = await make_organization(members=[(2, 10)])

        response = await client.put(
            f"/api/v1/organizations/{org.id}/members/{member.id}/usage-limit",
            json={"limit": 0.5, "admin_user_id": "admin-1"},
        )

        assert response.status_code == 400
        assert "$1" in response.json()["detail"]

    async def test_unknown_member_is_404(self, client, make_organization):
        org, _ = await make_organization(members=[(2, 10)])

        response = await client.put(
            f"/api/v1/organizations/{org.id}/members/no-such-user/usage-limit",
            json={"limit": 30, "admin_user_id": "admin-1"},
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Member not found"

    @pytest.mark.parametrize("body", [{}, {"limit": 10}, {"admin_user_id": "admin-1"}])
    async def test_missing_fields_is_422(self, client, body):
        response = await client.put(
            "/api/v1/organizations/org-1/members/user-1/usage-limit",
            json=body,
        )

        assert response.status_code == 422


class TestUserSubscriptionEndpoint:
    """Tests for the user subscription state endpoint."""

    async def test_team_member(self, client, make_organization):
        _, (member,) = await make_organization(members=[(1, 10)], plan="team", seats=3)

        response = await client.get(f"/api/v1/users/{member.id}/subscription")

        assert response.status_code == 200
        data = response.json()
        assert data["plan_name"] == "team"
        assert data["is_team"] is True
        assert data["features"]["multiplayer_enabled"] is True

    async def test_bypass_policy(self, client, make_user):
        from orgbilling.api.main import app

        user = await make_user()
        app.dependency_overrides[get_policy] = lambda: BillingPolicy(enforce_billing=False)

        response = await client.get(f"/api/v1/users/{user.id}/subscription")

        assert response.status_code == 200
        assert response.json()["is_enterprise"] is True
