#  Map Vault - Admin API Tests
#
#  Tests for admin-only endpoints: users and roles, stats, request log
#  retention, storage reconciliation.
#
#  Depends on: mapvault/routes/admin.py, tests/conftest.py
#  Used by:    pytest

from mapvault.models.enums import Bucket
from tests.helpers import bearer


async def _me(client, token) -> dict:
    return (await client.get("/api/auth/me", headers=bearer(token))).json()


class TestListUsers:
    async def test_admin_can_list_users(self, app_client, admin_token, user_token):
        resp = await app_client.get("/api/admin/users", headers=bearer(admin_token))
        assert resp.status_code == 200
        users = {u["email"]: u for u in resp.json()}
        assert users["admin@example.com"]["roles"] == ["admin"]
        assert users["user@example.com"]["roles"] == ["user"]
        assert users["user@example.com"]["is_active"] is True

    async def test_non_admin_gets_403(self, app_client, user_token):
        resp = await app_client.get("/api/admin/users", headers=bearer(user_token))
        assert resp.status_code == 403

    async def test_unauthenticated_gets_401(self, app_client):
        resp = await app_client.get("/api/admin/users")
        assert resp.status_code == 401


class TestRoles:
    async def test_grant_admin_takes_effect_immediately(self, app_client, admin_token, user_token):
        user = await _me(app_client, user_token)
        resp = await app_client.post(
            f"/api/admin/users/{user['id']}/roles", json={"role": "admin"}, headers=bearer(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["roles"] == ["admin", "user"]

        # Same token, role now read from user_roles
        resp = await app_client.get("/api/admin/users", headers=bearer(user_token))
        assert resp.status_code == 200

    async def test_revoke_admin(self, app_client, admin_token, user_token):
        user = await _me(app_client, user_token)
        await app_client.post(
            f"/api/admin/users/{user['id']}/roles", json={"role": "admin"}, headers=bearer(admin_token),
        )
        resp = await app_client.delete(
            f"/api/admin/users/{user['id']}/roles/admin", headers=bearer(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["roles"] == ["user"]

        resp = await app_client.get("/api/admin/users", headers=bearer(user_token))
        assert resp.status_code == 403

    async def test_cannot_remove_own_admin(self, app_client, admin_token):
        admin = await _me(app_client, admin_token)
        resp = await app_client.delete(
            f"/api/admin/users/{admin['id']}/roles/admin", headers=bearer(admin_token),
        )
        assert resp.status_code == 400

    async def test_unknown_role_rejected(self, app_client, admin_token, user_token):
        user = await _me(app_client, user_token)
        resp = await app_client.post(
            f"/api/admin/users/{user['id']}/roles", json={"role": "emperor"}, headers=bearer(admin_token),
        )
        assert resp.status_code == 422

    async def test_unknown_user(self, app_client, admin_token):
        resp = await app_client.post(
            "/api/admin/users/nope/roles", json={"role": "admin"}, headers=bearer(admin_token),
        )
        assert resp.status_code == 404


class TestStats:
    async def test_counts(self, app_client, admin_token, user_token, base_map, artifacts, rate_limiter):
        await artifacts.ingest_poster("p", "licensed", "p.png", b"x")
        await artifacts.create_overlay(base_map["id"], "t", 1914, [])
        user = await _me(app_client, user_token)
        for _ in range(3):
            await rate_limiter.log_request(user["id"], "historian-qa")

        resp = await app_client.get("/api/admin/stats", headers=bearer(admin_token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_users"] == 2
        assert data["active_users"] == 2
        assert data["admins"] == 1
        assert data["total_posters"] == 1
        assert data["total_base_maps"] == 1
        assert data["total_overlays"] == 1
        assert data["requests_last_hour"] == {"historian-qa": 3}

    async def test_non_admin_gets_403(self, app_client, user_token):
        resp = await app_client.get("/api/admin/stats", headers=bearer(user_token))
        assert resp.status_code == 403


class TestMaintenance:
    async def test_sweep_request_logs(self, app_client, admin_token, rate_limiter, clock):
        for _ in range(4):
            await rate_limiter.log_request("someone", "historian-qa")
        clock.advance(3601)

        resp = await app_client.post("/api/admin/request-logs/sweep", headers=bearer(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {"deleted": 4}

    async def test_reconcile_storage(self, app_client, admin_token, object_store, base_map):
        await object_store.put(Bucket.OVERLAYS, "overlays/ghost/o.png", b"x")

        resp = await app_client.post("/api/admin/storage/reconcile", headers=bearer(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {
            "orphans": [{"bucket": "overlays", "key": "overlays/ghost/o.png"}],
            "deleted": 0,
        }

        resp = await app_client.post(
            "/api/admin/storage/reconcile", params={"delete": "true"}, headers=bearer(admin_token),
        )
        assert resp.json()["deleted"] == 1
        assert not await object_store.exists(Bucket.OVERLAYS, "overlays/ghost/o.png")
        assert await object_store.exists(Bucket.BASE_MAPS, base_map["file_path"])

    async def test_reconcile_requires_admin(self, app_client, user_token):
        resp = await app_client.post("/api/admin/storage/reconcile", headers=bearer(user_token))
        assert resp.status_code == 403
