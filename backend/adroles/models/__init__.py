from adroles.models.role import Role, UserRole, ALL_ROLES
from adroles.models.user import User

__all__ = [
    "Role",
    "UserRole",
    "ALL_ROLES",
    "User",
]
