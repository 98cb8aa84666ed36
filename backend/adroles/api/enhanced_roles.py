"""Role resolution endpoints consumed by the dashboard."""

import logging
from dataclasses import replace
from fastapi import APIRouter, Depends

from adroles.config import Settings, get_settings
from adroles.errors import TestModeUnavailable
from adroles.models.role import ALL_ROLES
from adroles.models.user import User
from adroles.schemas.roles import (
    EnableAllRolesResponse,
    RoleResolutionResponse,
    RoleSwitchRequest,
)
from adroles.security import (
    get_current_resolution,
    get_current_user,
    get_request_context,
    get_role_resolver,
    get_role_store,
)
from adroles.services.role_resolver import RoleResolution, RoleResolver
from adroles.services.role_store import RoleStore
from adroles.services.test_mode import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


async def enable_all_roles_for(
    user: User,
    ctx: RequestContext,
    store: RoleStore,
    resolver: RoleResolver,
    settings: Settings,
) -> EnableAllRolesResponse:
    """Grant every role to *user*; only reachable outside production."""
    if not settings.is_non_production:
        logger.warning(
            "Rejected enable-all-roles for user %s in %s environment",
            user.id,
            settings.environment,
        )
        raise TestModeUnavailable(
            "Enabling all roles is only available in non-production environments"
        )

    await store.grant_all_roles(user.id)
    logger.warning(
        "AUDIT enable-all-roles user=%s pubkey=%s path=%s",
        user.id,
        user.pubkey,
        ctx.path,
    )
    resolution = await resolver.resolve(user.id, ctx)
    return EnableAllRolesResponse(
        message="All roles enabled",
        user_id=user.id,
        roles=list(ALL_ROLES),
        resolution=resolution.to_response(),
    )


@router.get("", response_model=RoleResolutionResponse)
async def get_roles(resolution: RoleResolution = Depends(get_current_resolution)):
    """Current role, available roles and capabilities for the caller."""
    return resolution.to_response()


@router.post("/switch", response_model=RoleResolutionResponse)
async def switch_role(
    data: RoleSwitchRequest,
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    store: RoleStore = Depends(get_role_store),
    resolver: RoleResolver = Depends(get_role_resolver),
):
    """Change the caller's active role."""
    test_mode_active = resolver.override.is_active(ctx)
    await store.set_current_role(current_user.id, data.role, test_mode_active=test_mode_active)
    if test_mode_active:
        ctx = replace(ctx, requested_role=data.role)
    resolution = await resolver.resolve(current_user.id, ctx)
    return resolution.to_response()


@router.post("/enable-all", response_model=EnableAllRolesResponse)
async def enable_all(
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    store: RoleStore = Depends(get_role_store),
    resolver: RoleResolver = Depends(get_role_resolver),
    settings: Settings = Depends(get_settings),
):
    return await enable_all_roles_for(current_user, ctx, store, resolver, settings)
