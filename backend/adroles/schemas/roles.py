from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from adroles.models.role import Role


class CamelModel(BaseModel):
    """Serializes snake_case fields as camelCase for the dashboard."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class RoleCapabilities(CamelModel):
    can_create_ads: bool = False
    can_manage_own_ads: bool = False
    can_approve_ads: bool = False
    can_view_analytics: bool = False
    can_manage_roles: bool = False
    can_view_financial_reports: bool = False
    can_manage_system: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True


class RoleResolutionResponse(CamelModel):
    current_role: Role
    available_roles: list[Role]
    capabilities: RoleCapabilities
    test_mode: bool = False


class RoleSwitchRequest(BaseModel):
    role: Role


class RoleGrantRequest(BaseModel):
    role: Role


class UserCreate(BaseModel):
    pubkey: str
    display_name: str | None = None


class RoleGrantInfo(CamelModel):
    role: str
    is_active: bool
    is_test_role: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class UserRolesResponse(CamelModel):
    user_id: UUID
    current_role: str | None
    active_roles: list[Role]


class UserResponse(CamelModel):
    id: UUID
    pubkey: str
    display_name: str | None = None
    is_active: bool
    is_test_user: bool
    current_role: str | None = None
    previous_role: str | None = None
    last_role_change: datetime | None = None
    created_at: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MeResponse(UserResponse):
    roles: RoleResolutionResponse


class EnableAllRolesResponse(CamelModel):
    success: bool = True
    message: str
    user_id: UUID
    roles: list[Role]
    resolution: RoleResolutionResponse


class RolesCheckResponse(CamelModel):
    """Store contents side by side with resolver output."""
    user_id: UUID
    stored_current_role: str | None
    active_roles: list[Role]
    grants: list[RoleGrantInfo]
    resolved: RoleResolutionResponse
    drift_detected: bool
    drift_message: str | None = None
    consistent: bool


class NavigationDecision(CamelModel):
    path: str
    role: Role
    allowed: bool
    redirect_to: str | None = None
