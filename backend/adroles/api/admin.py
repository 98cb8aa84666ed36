"""Admin API endpoints for user and role-grant management."""

import logging
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException

from adroles.models.role import Role
from adroles.schemas.roles import (
    RoleGrantInfo,
    RoleGrantRequest,
    UserCreate,
    UserResponse,
    UserRolesResponse,
)
from adroles.security import get_role_store, require_admin, require_capability
from adroles.services.capabilities import Capability
from adroles.services.role_resolver import RoleResolution, sort_roles
from adroles.services.role_store import RoleStore

logger = logging.getLogger(__name__)

router = APIRouter()

manage_roles = require_capability(Capability.CAN_MANAGE_ROLES)
admin_only = require_admin()


async def build_user_roles(store: RoleStore, user_id: UUID) -> UserRolesResponse:
    active = await store.list_active_roles(user_id)
    return UserRolesResponse(
        user_id=user_id,
        current_role=await store.get_stored_current_role(user_id),
        active_roles=sort_roles(active),
    )


# ============== User Endpoints ==============

@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    data: UserCreate,
    admin: RoleResolution = Depends(admin_only),
    store: RoleStore = Depends(get_role_store),
):
    """Create a user with the baseline viewer grant. Requires the admin role itself."""
    if await store.get_user_by_pubkey(data.pubkey):
        raise HTTPException(status_code=400, detail="Pubkey already registered")

    user = await store.create_user(data.pubkey, data.display_name)
    await store.grant_role(user.id, Role.VIEWER)
    user = await store.set_current_role(user.id, Role.VIEWER)
    return user


# ============== Grant Endpoints ==============

@router.get("/users/{user_id}/roles", response_model=UserRolesResponse)
async def list_user_roles(
    user_id: UUID,
    admin: RoleResolution = Depends(manage_roles),
    store: RoleStore = Depends(get_role_store),
):
    return await build_user_roles(store, user_id)


@router.get("/users/{user_id}/grants", response_model=list[RoleGrantInfo])
async def list_user_grants(
    user_id: UUID,
    admin: RoleResolution = Depends(manage_roles),
    store: RoleStore = Depends(get_role_store),
):
    """Every grant, including revoked and test-only ones."""
    return await store.list_grants(user_id)


@router.post("/users/{user_id}/roles", response_model=UserRolesResponse)
async def grant_user_role(
    user_id: UUID,
    data: RoleGrantRequest,
    admin: RoleResolution = Depends(manage_roles),
    store: RoleStore = Depends(get_role_store),
):
    await store.grant_role(user_id, data.role)
    logger.info("AUDIT admin(%s) granted %s to %s", admin.current_role.value, data.role.value, user_id)
    return await build_user_roles(store, user_id)


@router.delete("/users/{user_id}/roles/{role}", response_model=UserRolesResponse)
async def revoke_user_role(
    user_id: UUID,
    role: Role,
    admin: RoleResolution = Depends(manage_roles),
    store: RoleStore = Depends(get_role_store),
):
    await store.revoke_role(user_id, role)
    logger.info("AUDIT admin(%s) revoked %s from %s", admin.current_role.value, role.value, user_id)
    return await build_user_roles(store, user_id)
