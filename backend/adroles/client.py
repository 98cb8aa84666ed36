"""Client for the roles API with a namespaced role cache.

The cache only ever holds what the resolver returned. Any role change goes
through the API and invalidates the cache before the fresh response is
stored, so nothing can write role state into it independently.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, MutableMapping

import httpx

from adroles.config import get_settings
from adroles.models.role import Role
from adroles.schemas.roles import NavigationDecision, RoleResolutionResponse
from adroles.services.test_mode import (
    TEST_MODE_EXPIRES_HEADER,
    TEST_MODE_HEADER,
    TEST_ROLE_HEADER,
)

CACHE_FIELDS = ("currentRole", "availableRoles", "capabilities", "testMode")


class RoleAPIError(Exception):
    """Non-2xx response from the roles API, carrying its {error, code} body."""

    def __init__(self, status_code: int, error: str, code: str | None = None):
        self.status_code = status_code
        self.error = error
        self.code = code
        super().__init__(f"{status_code} {code or ''}: {error}".strip())


class RoleCache:
    """Mirror of the last resolver response under namespaced keys.

    The backing store is any mutable mapping of str -> str (a dict, a
    shelve, a browser-storage bridge). Values are JSON encoded.
    The key namespace defaults to the `cache_namespace` setting.
    """

    def __init__(self, storage: MutableMapping[str, str] | None = None, namespace: str | None = None):
        self.storage = storage if storage is not None else {}
        self.namespace = namespace or get_settings().cache_namespace

    def key(self, name: str) -> str:
        return f"{self.namespace}:{name}"

    def populate(self, resolution: RoleResolutionResponse) -> None:
        payload = resolution.model_dump(mode="json", by_alias=True)
        for name in CACHE_FIELDS:
            self.storage[self.key(name)] = json.dumps(payload[name])

    def invalidate(self) -> None:
        for name in CACHE_FIELDS:
            self.storage.pop(self.key(name), None)

    def _get(self, name: str) -> Any:
        raw = self.storage.get(self.key(name))
        return None if raw is None else json.loads(raw)

    @property
    def current_role(self) -> Role | None:
        value = self._get("currentRole")
        return Role(value) if value else None

    @property
    def available_roles(self) -> list[Role]:
        return [Role(value) for value in self._get("availableRoles") or []]

    @property
    def capabilities(self) -> dict[str, bool]:
        return self._get("capabilities") or {}

    def snapshot(self) -> RoleResolutionResponse | None:
        if self._get("currentRole") is None:
            return None
        return RoleResolutionResponse.model_validate({name: self._get(name) for name in CACHE_FIELDS})


@dataclass
class TestModeSession:
    """Client-local test-mode toggle. Advisory only; the server decides."""

    enabled: bool = False
    expires_at: datetime | None = None
    role: Role | None = None
    available_roles: list[Role] = field(default_factory=lambda: list(Role))

    def enable(self, ttl: timedelta | None = None, role: Role | None = None) -> None:
        self.enabled = True
        self.expires_at = datetime.utcnow() + ttl if ttl else None
        if role is not None:
            self.role = Role(role)

    def disable(self) -> None:
        self.enabled = False
        self.expires_at = None
        self.role = None

    def is_active(self, now: datetime | None = None) -> bool:
        if not self.enabled:
            return False
        if self.expires_at is not None and (now or datetime.utcnow()) >= self.expires_at:
            self.disable()
            return False
        return True

    def headers(self) -> dict[str, str]:
        if not self.is_active():
            return {}
        headers = {TEST_MODE_HEADER: "true"}
        if self.expires_at is not None:
            headers[TEST_MODE_EXPIRES_HEADER] = self.expires_at.isoformat()
        if self.role is not None:
            headers[TEST_ROLE_HEADER] = self.role.value
        return headers


class RoleClient:
    """Synchronous client for the roles API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        cache: RoleCache | None = None,
        test_mode: TestModeSession | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.cache = cache or RoleCache()
        self.test_mode = test_mode or TestModeSession()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RoleClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs) -> Any:
        headers = {**self.test_mode.headers(), **kwargs.pop("headers", {})}
        response = self._client.request(method, url, headers=headers, **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {"error": response.text}
            raise RoleAPIError(response.status_code, body.get("error", ""), body.get("code"))
        return response.json()

    def _store(self, payload: dict) -> RoleResolutionResponse:
        resolution = RoleResolutionResponse.model_validate(payload)
        self.cache.populate(resolution)
        return resolution

    def fetch_roles(self) -> RoleResolutionResponse:
        return self._store(self._request("GET", "/api/enhanced-roles"))

    def current_roles(self) -> RoleResolutionResponse:
        """Cached resolution if present, otherwise fetched."""
        return self.cache.snapshot() or self.fetch_roles()

    def switch_role(self, role: Role) -> RoleResolutionResponse:
        role = Role(role)
        self.cache.invalidate()
        if self.test_mode.is_active():
            self.test_mode.role = role
        payload = self._request("POST", "/api/enhanced-roles/switch", json={"role": role.value})
        return self._store(payload)

    def enable_all_roles(self) -> RoleResolutionResponse:
        self.cache.invalidate()
        payload = self._request("POST", "/api/enhanced-roles/enable-all")
        return self._store(payload["resolution"])

    def check_route(self, path: str) -> NavigationDecision:
        return NavigationDecision.model_validate(
            self._request("GET", "/api/navigation/check", params={"path": path})
        )

    def enable_test_mode(self, ttl: timedelta | None = None, role: Role | None = None) -> None:
        self.cache.invalidate()
        self.test_mode.enable(ttl=ttl, role=role)

    def disable_test_mode(self) -> None:
        self.cache.invalidate()
        self.test_mode.disable()
