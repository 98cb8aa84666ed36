"""Static capability table: role -> boolean permission flags."""

from enum import Enum

from pydantic.alias_generators import to_snake

from adroles.errors import InvalidRoleError
from adroles.models.role import Role, ALL_ROLES
from adroles.schemas.roles import RoleCapabilities


class Capability(str, Enum):
    """Names of the capability flags on RoleCapabilities."""
    CAN_CREATE_ADS = "can_create_ads"
    CAN_MANAGE_OWN_ADS = "can_manage_own_ads"
    CAN_APPROVE_ADS = "can_approve_ads"
    CAN_VIEW_ANALYTICS = "can_view_analytics"
    CAN_MANAGE_ROLES = "can_manage_roles"
    CAN_VIEW_FINANCIAL_REPORTS = "can_view_financial_reports"
    CAN_MANAGE_SYSTEM = "can_manage_system"


ROLE_CAPABILITIES: dict[Role, RoleCapabilities] = {
    Role.VIEWER: RoleCapabilities(
        can_view_analytics=True,
    ),
    Role.ADVERTISER: RoleCapabilities(
        can_create_ads=True,
        can_manage_own_ads=True,
        can_view_analytics=True,
    ),
    Role.PUBLISHER: RoleCapabilities(
        can_approve_ads=True,
        can_view_analytics=True,
    ),
    Role.STAKEHOLDER: RoleCapabilities(
        can_view_analytics=True,
        can_view_financial_reports=True,
    ),
    Role.ADMIN: RoleCapabilities(**{cap.value: True for cap in Capability}),
}


def capabilities_for(role: Role) -> RoleCapabilities:
    """Return the capability set for *role*.

    Raises InvalidRoleError for anything outside the Role enumeration.
    """
    try:
        return ROLE_CAPABILITIES[Role(role)]
    except (KeyError, ValueError):
        raise InvalidRoleError(role, [r.value for r in ALL_ROLES]) from None


def full_capabilities() -> RoleCapabilities:
    """Every capability granted; used while test mode is active."""
    return ROLE_CAPABILITIES[Role.ADMIN]


def parse_role(value: str) -> Role:
    """Validate an untrusted role string."""
    try:
        return Role(value.strip().lower())
    except (ValueError, AttributeError):
        raise InvalidRoleError(value, [r.value for r in ALL_ROLES]) from None


def parse_capability(value: Capability | str) -> Capability:
    """Accept a capability by field name or by its camelCase alias."""
    try:
        return Capability(value)
    except ValueError:
        return Capability(to_snake(value))


def all_roles() -> list[Role]:
    return list(ALL_ROLES)
