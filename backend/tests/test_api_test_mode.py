"""
API tests in a development environment, where test mode is reachable.
"""

from datetime import datetime, timedelta

import pytest

from adroles.models.role import Role

from conftest import make_settings

ALL_ROLE_NAMES = ["viewer", "advertiser", "publisher", "admin", "stakeholder"]


@pytest.fixture
def app_settings():
    return make_settings(environment="development")


class TestDevLogin:

    def test_issues_token_for_test_pubkey(self, client):
        response = client.post("/api/auth/token", json={"pubkey": "pk_test_bob", "display_name": "Bob"})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["currentRole"] == "viewer"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["pubkey"] == "pk_test_bob"

    def test_login_is_repeatable(self, client):
        first = client.post("/api/auth/token", json={"pubkey": "pk_test_bob"}).json()
        second = client.post("/api/auth/token", json={"pubkey": "pk_test_bob"}).json()
        assert first["user"]["id"] == second["user"]["id"]

    def test_rejects_regular_pubkey(self, client):
        response = client.post("/api/auth/token", json={"pubkey": "pk_alice"})
        assert response.status_code == 403


class TestClientFlag:

    def test_flag_grants_full_capabilities(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")

        body = client.get("/api/enhanced-roles", headers=auth_headers(user, **{"X-Test-Mode": "true"})).json()

        assert body["testMode"] is True
        assert body["currentRole"] == "admin"
        assert body["availableRoles"] == ALL_ROLE_NAMES
        assert all(body["capabilities"].values())

    def test_without_flag_grants_are_used(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")
        body = client.get("/api/enhanced-roles", headers=auth_headers(user)).json()
        assert body["testMode"] is False
        assert body["currentRole"] == "viewer"

    def test_expired_flag(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")
        expired = (datetime.utcnow() - timedelta(minutes=1)).isoformat()

        body = client.get(
            "/api/enhanced-roles",
            headers=auth_headers(user, **{"X-Test-Mode": "true", "X-Test-Mode-Expires": expired}),
        ).json()

        assert body["testMode"] is False

    def test_requested_role(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")

        body = client.get(
            "/api/enhanced-roles",
            headers=auth_headers(user, **{"X-Test-Mode": "1", "X-Test-Role": "publisher"}),
        ).json()

        assert body["currentRole"] == "publisher"
        assert body["capabilities"]["canManageSystem"] is True

    def test_switch_without_grant(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")
        headers = auth_headers(user, **{"X-Test-Mode": "true"})

        response = client.post("/api/enhanced-roles/switch", json={"role": "stakeholder"}, headers=headers)

        assert response.status_code == 200
        assert response.json()["currentRole"] == "stakeholder"
        assert response.json()["testMode"] is True

    def test_admin_only_endpoint_is_open(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")
        headers = auth_headers(user, **{"X-Test-Mode": "true", "X-Test-Role": "viewer"})

        response = client.post("/api/admin/users", json={"pubkey": "pk_carol"}, headers=headers)

        assert response.status_code == 201
        assert response.json()["pubkey"] == "pk_carol"

    def test_navigation_is_unrestricted(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")
        body = client.get(
            "/api/navigation/check",
            params={"path": "/admin/system"},
            headers=auth_headers(user, **{"X-Test-Mode": "true"}),
        ).json()
        assert body["allowed"] is True


class TestTestUsers:

    def test_prefix_activates_test_mode(self, client, database, auth_headers):
        user = database.seed_user("pk_test_bob")
        body = client.get("/api/enhanced-roles", headers=auth_headers(user)).json()
        assert body["testMode"] is True
        assert body["currentRole"] == "admin"


class TestEnableAll:

    def test_grants_every_role(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")

        response = client.post("/api/enhanced-roles/enable-all", headers=auth_headers(user))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["roles"] == ALL_ROLE_NAMES
        assert body["resolution"]["availableRoles"] == ALL_ROLE_NAMES
        assert body["resolution"]["currentRole"] == "viewer"

        grants = database.run(lambda store: store.list_active_roles(user.id))
        assert grants == set(Role)

    def test_enable_test_roles_requires_test_pubkey(self, client, database, auth_headers):
        user = database.seed_user("pk_alice")
        response = client.post("/api/auth/enable-test-roles", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["code"] == "test_mode_unavailable"

    def test_enable_test_roles(self, client, database, auth_headers):
        user = database.seed_user("pk_test_bob")

        response = client.post("/api/auth/enable-test-roles", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json()["roles"] == ALL_ROLE_NAMES
        check = client.get("/api/auth/roles-check", headers=auth_headers(user)).json()
        assert [grant["role"] for grant in check["grants"]] == sorted(ALL_ROLE_NAMES)
