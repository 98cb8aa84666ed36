import logging
from typing import Annotated
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from adroles.api.enhanced_roles import enable_all_roles_for
from adroles.config import Settings, get_settings
from adroles.errors import TestModeUnavailable
from adroles.models.role import Role
from adroles.models.user import User
from adroles.schemas.roles import (
    EnableAllRolesResponse,
    MeResponse,
    RoleGrantInfo,
    RolesCheckResponse,
    UserResponse,
)
from adroles.security import (
    create_access_token,
    get_current_resolution,
    get_current_user,
    get_request_context,
    get_role_resolver,
    get_role_store,
)
from adroles.services.role_resolver import RoleResolution, RoleResolver, sort_roles
from adroles.services.role_store import RoleStore
from adroles.services.test_mode import RequestContext, TestModeOverride

logger = logging.getLogger(__name__)

router = APIRouter()


class DevLoginRequest(BaseModel):
    pubkey: str
    display_name: str | None = None


class TokenWithUser(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


@router.post("/token", response_model=TokenWithUser)
async def dev_login(
    data: DevLoginRequest,
    store: RoleStore = Depends(get_role_store),
    settings: Settings = Depends(get_settings),
):
    """Issue a token for a test pubkey. Development environments only.

    Real sign-in (nostr signature verification) lives outside this service.
    """
    override = TestModeOverride(lambda: settings)
    if not override.environment_allows() or not override.is_test_user(data.pubkey):
        raise TestModeUnavailable("Test login is only available for test accounts outside production")

    user = await store.get_user_by_pubkey(data.pubkey)
    if user is None:
        user = await store.create_user(data.pubkey, data.display_name)
        await store.grant_role(user.id, Role.VIEWER)
        user = await store.set_current_role(user.id, Role.VIEWER)

    access_token = create_access_token(data={"sub": str(user.id)}, settings=settings)
    return TokenWithUser(
        access_token=access_token,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=MeResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
    resolution: RoleResolution = Depends(get_current_resolution),
):
    user = UserResponse.model_validate(current_user)
    return MeResponse(**user.model_dump(), roles=resolution.to_response())


@router.post("/enable-test-roles", response_model=EnableAllRolesResponse)
async def enable_test_roles(
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    store: RoleStore = Depends(get_role_store),
    resolver: RoleResolver = Depends(get_role_resolver),
    settings: Settings = Depends(get_settings),
):
    """Grant all roles to an authenticated test account."""
    if not resolver.override.is_test_user(current_user.pubkey):
        logger.warning("Attempt to enable test roles for non-test pubkey: %s", current_user.pubkey)
        raise TestModeUnavailable("Only test accounts can use this endpoint")
    return await enable_all_roles_for(current_user, ctx, store, resolver, settings)


@router.get("/roles-check", response_model=RolesCheckResponse)
async def roles_check(
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    store: RoleStore = Depends(get_role_store),
    resolver: RoleResolver = Depends(get_role_resolver),
):
    """Compare a direct store read with the resolver's answer."""
    stored = await store.get_stored_current_role(current_user.id)
    active = await store.list_active_roles(current_user.id)
    grants = await store.list_grants(current_user.id)
    resolution = await resolver.resolve(current_user.id, ctx)

    consistent = (
        not resolution.test_mode
        and resolution.drift is None
        and stored == resolution.current_role.value
        and resolution.available_roles == sort_roles(active)
    )
    return RolesCheckResponse(
        user_id=current_user.id,
        stored_current_role=stored,
        active_roles=sort_roles(active),
        grants=[RoleGrantInfo.model_validate(grant) for grant in grants],
        resolved=resolution.to_response(),
        drift_detected=resolution.drift is not None,
        drift_message=resolution.drift.describe() if resolution.drift else None,
        consistent=consistent,
    )
