"""Single entry point for "what can this user do right now"."""

import logging
import uuid
from dataclasses import dataclass

from adroles.errors import RoleDriftDetected
from adroles.models.role import Role, ALL_ROLES
from adroles.schemas.roles import RoleCapabilities, RoleResolutionResponse
from adroles.services.capabilities import capabilities_for, full_capabilities
from adroles.services.role_store import RoleStore
from adroles.services.test_mode import RequestContext, TestModeOverride

logger = logging.getLogger(__name__)


@dataclass
class RoleResolution:
    current_role: Role
    available_roles: list[Role]
    capabilities: RoleCapabilities
    test_mode: bool = False
    drift: RoleDriftDetected | None = None

    def to_response(self) -> RoleResolutionResponse:
        return RoleResolutionResponse(
            current_role=self.current_role,
            available_roles=self.available_roles,
            capabilities=self.capabilities,
            test_mode=self.test_mode,
        )


def sort_roles(roles) -> list[Role]:
    """Order roles canonically."""
    return [role for role in ALL_ROLES if role in roles]


def fallback_role(active_roles: set[Role]) -> Role:
    """Deterministic choice when the stored role is missing or stale."""
    if Role.VIEWER in active_roles or not active_roles:
        return Role.VIEWER
    return min(active_roles, key=lambda role: role.value)


class RoleResolver:
    def __init__(self, store: RoleStore, override: TestModeOverride):
        self.store = store
        self.override = override

    def test_mode_resolution(self, ctx: RequestContext | None) -> RoleResolution:
        requested = ctx.requested_role if ctx and ctx.requested_role else Role.ADMIN
        return RoleResolution(
            current_role=requested,
            available_roles=list(ALL_ROLES),
            capabilities=full_capabilities(),
            test_mode=True,
        )

    async def resolve(self, user_id: uuid.UUID, ctx: RequestContext | None = None) -> RoleResolution:
        # Test mode never reads the store, so debug sessions cannot depend on
        # or corrupt real grant data.
        if self.override.is_active(ctx):
            return self.test_mode_resolution(ctx)

        active = await self.store.list_active_roles(user_id)
        stored = await self.store.get_stored_current_role(user_id)

        drift = None
        current = None
        if stored is not None:
            try:
                candidate = Role(stored)
            except ValueError:
                candidate = None
            if candidate in active:
                current = candidate

        if current is None:
            current = fallback_role(active)
            if stored is not None:
                drift = RoleDriftDetected(
                    user_id=str(user_id),
                    stored_role=stored,
                    active_roles=[role.value for role in sort_roles(active)],
                    fallback_role=current.value,
                )
                logger.warning(drift.describe())

        return RoleResolution(
            current_role=current,
            available_roles=sort_roles(active),
            capabilities=capabilities_for(current),
            test_mode=False,
            drift=drift,
        )
