"""Domain errors for role resolution and their HTTP rendering.

Every error carries a stable ``code`` and the HTTP status the API layer
maps it to. Handlers registered in ``adroles.main`` render them as
``{"error": <message>, "code": <code>}``.
"""

from dataclasses import dataclass, field
from datetime import datetime


class RoleError(Exception):
    """Base class for role/permission errors surfaced to API callers."""

    code = "role_error"
    status_code = 400

    def __init__(self, message: str, **context):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.context:
            body["context"] = self.context
        return body


class InvariantViolation(RoleError):
    """The change would leave a user without any active grant."""
    code = "invariant_violation"
    status_code = 400


class NotGranted(RoleError):
    """Attempt to activate a role the user does not hold."""
    code = "not_granted"
    status_code = 400


class Forbidden(RoleError):
    code = "forbidden"
    status_code = 403


class Unauthenticated(RoleError):
    code = "unauthenticated"
    status_code = 401


class UserNotFound(RoleError):
    code = "user_not_found"
    status_code = 404


class TestModeUnavailable(Forbidden):
    """Test-mode endpoints called where the environment forbids them."""
    code = "test_mode_unavailable"


class InvalidRoleError(ValueError):
    """Raised for a role value outside the closed enumeration.

    This indicates a programming mistake: role strings must be validated
    at the edge before reaching the capability table.
    """

    def __init__(self, role: object, valid_roles: list[str]):
        self.role = role
        self.valid_roles = valid_roles
        super().__init__(f"Invalid role {role!r}. Valid roles: {valid_roles}")


@dataclass
class RoleDriftDetected:
    """Diagnostic: the stored current role is not among the active grants.

    Non-fatal. The resolver logs it and continues with a fallback role.
    """
    user_id: str
    stored_role: str
    active_roles: list[str]
    fallback_role: str
    detected_at: datetime = field(default_factory=datetime.utcnow)

    def describe(self) -> str:
        return (
            f"Role drift for user {self.user_id}: stored current role "
            f"'{self.stored_role}' not in active roles {self.active_roles}; "
            f"falling back to '{self.fallback_role}'"
        )
