"""
Tests for the roles API client and its cache, using httpx.MockTransport.
"""

import json
from datetime import datetime, timedelta

import httpx
import pytest

from adroles.client import RoleAPIError, RoleCache, RoleClient
from adroles.client import TestModeSession as ModeSession
from adroles.models.role import Role
from adroles.schemas.roles import RoleResolutionResponse
from adroles.services.capabilities import capabilities_for

from conftest import make_settings


def resolution_payload(role="viewer", available=("viewer",), test_mode=False):
    return {
        "currentRole": role,
        "availableRoles": list(available),
        "capabilities": capabilities_for(role).model_dump(by_alias=True),
        "testMode": test_mode,
    }


class RecordingHandler:
    """Serves canned responses per (method, path) and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes[(request.method, request.url.path)]
        return httpx.Response(status, json=body)


def make_client(routes, **kwargs):
    handler = RecordingHandler(routes)
    client = RoleClient("http://roles.test", token="abc", transport=httpx.MockTransport(handler), **kwargs)
    return client, handler


class TestRoleCache:

    def test_namespaced_keys(self):
        storage = {}
        cache = RoleCache(storage)
        cache.populate(RoleResolutionResponse.model_validate(resolution_payload("advertiser", ["viewer", "advertiser"])))

        assert set(storage) == {
            "nostr-ads:currentRole",
            "nostr-ads:availableRoles",
            "nostr-ads:capabilities",
            "nostr-ads:testMode",
        }
        assert json.loads(storage["nostr-ads:currentRole"]) == "advertiser"
        assert cache.current_role is Role.ADVERTISER
        assert cache.available_roles == [Role.VIEWER, Role.ADVERTISER]
        assert cache.capabilities["canCreateAds"] is True

    def test_invalidate_leaves_other_keys(self):
        storage = {"other:key": "1"}
        cache = RoleCache(storage)
        cache.populate(RoleResolutionResponse.model_validate(resolution_payload()))

        cache.invalidate()

        assert storage == {"other:key": "1"}
        assert cache.current_role is None
        assert cache.snapshot() is None

    def test_custom_namespace(self):
        cache = RoleCache(namespace="staging")
        assert cache.key("currentRole") == "staging:currentRole"

    def test_namespace_defaults_to_setting(self, monkeypatch):
        settings = make_settings(cache_namespace="ads-dev")
        monkeypatch.setattr("adroles.client.get_settings", lambda: settings)

        assert RoleCache().key("capabilities") == "ads-dev:capabilities"


class TestTestModeSession:

    def test_inactive_by_default(self):
        assert ModeSession().headers() == {}

    def test_headers(self):
        session = ModeSession()
        session.enable(ttl=timedelta(minutes=30), role=Role.PUBLISHER)

        headers = session.headers()

        assert headers["X-Test-Mode"] == "true"
        assert headers["X-Test-Role"] == "publisher"
        assert datetime.fromisoformat(headers["X-Test-Mode-Expires"]) > datetime.utcnow()

    def test_expiry_disables(self):
        session = ModeSession()
        session.enable(ttl=timedelta(minutes=5))
        assert session.is_active(datetime.utcnow() + timedelta(minutes=10)) is False
        assert session.enabled is False


class TestRoleClient:

    def test_fetch_populates_cache(self):
        client, handler = make_client({("GET", "/api/enhanced-roles"): (200, resolution_payload())})

        resolution = client.fetch_roles()

        assert resolution.current_role is Role.VIEWER
        assert client.cache.current_role is Role.VIEWER
        assert handler.requests[0].headers["authorization"] == "Bearer abc"

    def test_current_roles_uses_cache(self):
        client, handler = make_client({("GET", "/api/enhanced-roles"): (200, resolution_payload())})
        client.fetch_roles()
        client.current_roles()
        assert len(handler.requests) == 1

    def test_switch_role(self):
        client, handler = make_client({
            ("GET", "/api/enhanced-roles"): (200, resolution_payload()),
            ("POST", "/api/enhanced-roles/switch"): (
                200, resolution_payload("advertiser", ["viewer", "advertiser"]),
            ),
        })
        client.fetch_roles()

        resolution = client.switch_role(Role.ADVERTISER)

        assert resolution.current_role is Role.ADVERTISER
        assert client.cache.current_role is Role.ADVERTISER
        assert json.loads(handler.requests[-1].content) == {"role": "advertiser"}

    def test_failed_switch_clears_cache(self):
        client, _ = make_client({
            ("GET", "/api/enhanced-roles"): (200, resolution_payload()),
            ("POST", "/api/enhanced-roles/switch"): (
                400, {"error": "User does not have access to role: admin", "code": "not_granted"},
            ),
        })
        client.fetch_roles()

        with pytest.raises(RoleAPIError) as exc:
            client.switch_role(Role.ADMIN)

        assert exc.value.status_code == 400
        assert exc.value.code == "not_granted"
        assert exc.value.error == "User does not have access to role: admin"
        assert client.cache.current_role is None

    def test_enable_all_roles(self):
        all_roles = [role.value for role in Role]
        client, _ = make_client({
            ("POST", "/api/enhanced-roles/enable-all"): (200, {
                "success": True,
                "message": "All roles enabled",
                "userId": "8a6e0804-2bd0-4672-b79d-d97027f9071a",
                "roles": all_roles,
                "resolution": resolution_payload("viewer", all_roles),
            }),
        })

        resolution = client.enable_all_roles()

        assert resolution.available_roles == list(Role)
        assert client.cache.available_roles == list(Role)

    def test_test_mode_headers_are_sent(self):
        client, handler = make_client({
            ("GET", "/api/enhanced-roles"): (200, resolution_payload("admin", [r.value for r in Role], True)),
        })
        client.enable_test_mode(role=Role.ADMIN)

        client.fetch_roles()

        sent = handler.requests[0].headers
        assert sent["x-test-mode"] == "true"
        assert sent["x-test-role"] == "admin"

    def test_disable_test_mode(self):
        client, handler = make_client({("GET", "/api/enhanced-roles"): (200, resolution_payload())})
        client.enable_test_mode()
        client.disable_test_mode()

        client.fetch_roles()

        assert "x-test-mode" not in handler.requests[0].headers

    def test_check_route(self):
        client, handler = make_client({
            ("GET", "/api/navigation/check"): (200, {
                "path": "/admin", "role": "viewer", "allowed": False, "redirectTo": "/dashboard/viewer",
            }),
        })

        decision = client.check_route("/admin")

        assert decision.allowed is False
        assert decision.redirect_to == "/dashboard/viewer"
        assert handler.requests[0].url.params["path"] == "/admin"
