"""Tests for the access-control HTTP endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient


@pytest.mark.api
@pytest.mark.asyncio
class TestCallerEndpoints:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_readiness_reports_audit_queue(self, client: AsyncClient, audit, monkeypatch):
        monkeypatch.setattr("jewelcrm.routers.health.audit_logger", audit)
        audit.dropped = 3

        response = await client.get("/health/ready")

        assert response.json()["audit_queue"] == {"pending": 0, "dropped": 3}

    async def test_requires_bearer_token(self, client: AsyncClient):
        response = await client.get("/api/access/me/permissions")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_401"

    async def test_rejects_forged_token(self, client: AsyncClient):
        response = await client.get(
            "/api/access/me/permissions",
            headers={"Authorization": "Bearer not.a.token"},
        )
        assert response.status_code == 401

    async def test_my_permissions(self, client, catalog, make_user, token_for):
        user_id = await make_user("sales_associate")

        response = await client.get("/api/access/me/permissions", headers=token_for(user_id))

        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "sales_associate"
        assert "view_customers" in {p["name"] for p in data["effective_permissions"]}

    async def test_my_permissions_without_profile(self, client, catalog, make_user, token_for):
        user_id = await make_user("viewer", is_active=False)

        response = await client.get("/api/access/me/permissions", headers=token_for(user_id))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_check(self, client, audit, rbac, catalog, make_user, token_for):
        user_id = await make_user("sales_associate")

        granted = await client.post(
            "/api/access/check",
            json={"permission": "view_customers"},
            headers=token_for(user_id),
        )
        denied = await client.post(
            "/api/access/check",
            json={"permission": "manage_finances"},
            headers=token_for(user_id),
        )

        assert granted.json()["granted"] is True
        assert denied.json()["granted"] is False
        await audit.drain()
        assert len(await rbac.get_access_attempts(user_id=user_id)) == 2

    async def test_check_validation_error(self, client, catalog, make_user, token_for):
        user_id = await make_user("sales_associate")

        response = await client.post("/api/access/check", json={}, headers=token_for(user_id))

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_catalog_endpoints(self, client, catalog, make_user, token_for):
        headers = token_for(await make_user("viewer"))

        roles = await client.get("/api/access/roles", headers=headers)
        permissions = await client.get("/api/access/permissions", headers=headers)
        matrix = await client.get("/api/access/matrix", headers=headers)

        assert roles.status_code == 200
        assert roles.json()[0]["level"] == 5
        assert len(permissions.json()) == len(catalog)
        assert matrix.json()["matrix"]["guest"]["view_inventory"] is True


@pytest.mark.api
@pytest.mark.asyncio
class TestAdministrationEndpoints:
    async def test_create_user_requires_manage_users(self, client, catalog, make_user, token_for):
        body = {"email": "new.hire@example.com", "full_name": "New Hire", "role": "viewer"}

        denied = await client.post(
            "/api/access/users", json=body, headers=token_for(await make_user("sales_associate"))
        )
        created = await client.post(
            "/api/access/users", json=body, headers=token_for(await make_user("store_owner"))
        )

        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == "PERMISSION_DENIED"
        assert created.status_code == 201
        assert created.json()["role"] == "viewer"

    async def test_role_change_respects_hierarchy(self, client, catalog, make_user, token_for):
        manager = await make_user("store_manager")
        owner = await make_user("store_owner")
        associate = await make_user("sales_associate")

        upward = await client.patch(
            f"/api/access/users/{owner}/role",
            json={"role": "guest"},
            headers=token_for(manager),
        )
        downward = await client.patch(
            f"/api/access/users/{associate}/role",
            json={"role": "senior_sales_associate", "reason": "promotion"},
            headers=token_for(manager),
        )

        assert upward.status_code == 403
        assert downward.status_code == 200
        assert downward.json()["role"] == "senior_sales_associate"

    async def test_cannot_promote_self_above_own_role(self, client, rbac, catalog, make_user, token_for):
        manager = await make_user("store_manager")

        response = await client.patch(
            f"/api/access/users/{manager}/role",
            json={"role": "store_owner"},
            headers=token_for(manager),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"
        assert await rbac.get_user_role(manager) == "store_manager"

    async def test_cannot_promote_subordinate_above_own_role(
        self, client, rbac, catalog, make_user, token_for
    ):
        manager = await make_user("store_manager")
        associate = await make_user("sales_associate")

        response = await client.patch(
            f"/api/access/users/{associate}/role",
            json={"role": "store_owner"},
            headers=token_for(manager),
        )

        assert response.status_code == 403
        assert await rbac.get_user_role(associate) == "sales_associate"

    async def test_cannot_create_user_above_own_role(self, client, catalog, make_user, token_for):
        manager = await make_user("store_manager")

        response = await client.post(
            "/api/access/users",
            json={"email": "owner2@example.com", "full_name": "Second Owner", "role": "store_owner"},
            headers=token_for(manager),
        )

        assert response.status_code == 403

    async def test_grant_with_utc_expiry_in_the_past(self, client, rbac, catalog, make_user, token_for):
        owner = await make_user("store_owner")
        associate = await make_user("sales_associate")
        expired = (datetime.now(timezone.utc) - timedelta(hours=1)).strftime("%Y-%m-%dT%H:%M:%SZ")

        response = await client.post(
            f"/api/access/users/{associate}/permissions",
            json={"permission_id": catalog["export_reports"].id, "expires_at": expired},
            headers=token_for(owner),
        )

        assert response.status_code == 201
        assert await rbac.has_permission(associate, "export_reports") is False

    async def test_grant_and_revoke(self, client, rbac, catalog, make_user, token_for):
        owner = await make_user("store_owner")
        associate = await make_user("sales_associate")
        pid = catalog["export_reports"].id

        granted = await client.post(
            f"/api/access/users/{associate}/permissions",
            json={"permission_id": pid, "reason": "year end"},
            headers=token_for(owner),
        )
        assert granted.status_code == 201
        assert await rbac.has_permission(associate, "export_reports") is True

        revoked = await client.delete(
            f"/api/access/users/{associate}/permissions/{pid}", headers=token_for(owner)
        )
        assert revoked.status_code == 200
        assert await rbac.has_permission(associate, "export_reports") is False

    async def test_grant_unknown_permission(self, client, catalog, make_user, token_for):
        owner = await make_user("store_owner")
        associate = await make_user("sales_associate")

        response = await client.post(
            f"/api/access/users/{associate}/permissions",
            json={"permission_id": "nope"},
            headers=token_for(owner),
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "PERMISSION_NOT_GRANTED"

    async def test_deactivate(self, client, rbac, catalog, make_user, token_for):
        owner = await make_user("store_owner")
        associate = await make_user("sales_associate")

        response = await client.post(
            f"/api/access/users/{associate}/deactivate",
            json={"reason": "seasonal contract ended"},
            headers=token_for(owner),
        )

        assert response.status_code == 200
        assert await rbac.get_user_permissions(associate) is None

    async def test_create_team(self, client, catalog, make_user, token_for):
        manager = await make_user("store_manager")
        member = await make_user("jeweler")

        response = await client.post(
            "/api/access/teams",
            json={"name": "Custom Orders", "members": [member]},
            headers=token_for(manager),
        )

        assert response.status_code == 201
        assert [m["user_id"] for m in response.json()["members"]] == [member]

    async def test_logs_require_permission(self, client, audit, catalog, make_user, token_for):
        owner = await make_user("store_owner")
        associate = await make_user("sales_associate")

        denied = await client.get("/api/access/audit-logs", headers=token_for(associate))
        await audit.drain()
        attempts = await client.get(
            "/api/access/access-attempts",
            params={"access_granted": "false"},
            headers=token_for(owner),
        )
        events = await client.get("/api/access/security-events", headers=token_for(owner))

        assert denied.status_code == 403
        assert attempts.status_code == 200
        assert [a["permission_required"] for a in attempts.json()] == ["view_audit_logs"]
        assert events.status_code == 200
