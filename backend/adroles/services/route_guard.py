"""Allow/deny decisions for capabilities and routes.

Route rules are checked top to bottom and the first matching prefix wins.
Paths that match no rule are allowed.
"""

from dataclasses import dataclass

from adroles.models.role import Role
from adroles.schemas.roles import NavigationDecision, RoleCapabilities
from adroles.services.capabilities import Capability, capabilities_for, parse_capability


@dataclass(frozen=True)
class RouteRule:
    prefix: str
    role: Role | None = None
    capability: Capability | None = None

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix.rstrip("/") + "/")

    def permits(self, role: Role) -> bool:
        if self.role is not None and role != self.role:
            return False
        if self.capability is not None and not is_allowed(capabilities_for(role), self.capability):
            return False
        return True


ROUTE_RULES: tuple[RouteRule, ...] = (
    RouteRule("/admin", role=Role.ADMIN),
    RouteRule("/dashboard/admin", role=Role.ADMIN),
    RouteRule("/dashboard/users", role=Role.ADMIN),
    RouteRule("/dashboard/system", role=Role.ADMIN),
    RouteRule("/dashboard/advertiser", capability=Capability.CAN_CREATE_ADS),
    RouteRule("/dashboard/ads", capability=Capability.CAN_MANAGE_OWN_ADS),
    RouteRule("/dashboard/campaigns", capability=Capability.CAN_CREATE_ADS),
    RouteRule("/dashboard/publisher", capability=Capability.CAN_APPROVE_ADS),
    RouteRule("/dashboard/reports", capability=Capability.CAN_VIEW_FINANCIAL_REPORTS),
    RouteRule("/dashboard/finance", capability=Capability.CAN_VIEW_FINANCIAL_REPORTS),
    RouteRule("/dashboard/stakeholder", capability=Capability.CAN_VIEW_FINANCIAL_REPORTS),
)

DASHBOARD_PATHS = {
    Role.VIEWER: "/dashboard/viewer",
    Role.ADVERTISER: "/dashboard/advertiser",
    Role.PUBLISHER: "/dashboard/publisher",
    Role.ADMIN: "/dashboard/admin",
    Role.STAKEHOLDER: "/dashboard/stakeholder",
}


def is_allowed(capabilities: RoleCapabilities, required_capability: Capability | str) -> bool:
    return bool(getattr(capabilities, parse_capability(required_capability).value))


def normalize_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0].strip().replace("\\", "/") or "/"
    # Collapse leading slashes so "//host" can never become a redirect target
    path = "/" + path.lstrip("/")
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def match_rule(path: str) -> RouteRule | None:
    path = normalize_path(path)
    for rule in ROUTE_RULES:
        if rule.matches(path):
            return rule
    return None


def is_route_allowed(role: Role, path: str) -> bool:
    rule = match_rule(path)
    if rule is None:
        return True
    return rule.permits(Role(role))


def dashboard_path(role: Role) -> str:
    return DASHBOARD_PATHS.get(Role(role), "/dashboard")


def check_navigation(role: Role, path: str, test_mode: bool = False) -> NavigationDecision:
    """Decide a page navigation; denials redirect to the role's dashboard."""
    role = Role(role)
    allowed = test_mode or is_route_allowed(role, path)
    return NavigationDecision(
        path=normalize_path(path),
        role=role,
        allowed=allowed,
        redirect_to=None if allowed else dashboard_path(role),
    )
