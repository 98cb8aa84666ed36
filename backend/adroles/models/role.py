"""Role enumeration and per-user role grants."""

import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import String, DateTime, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from adroles.db.postgres import Base


class Role(str, Enum):
    """Closed set of marketplace roles."""
    VIEWER = "viewer"
    ADVERTISER = "advertiser"
    PUBLISHER = "publisher"
    ADMIN = "admin"
    STAKEHOLDER = "stakeholder"


# Canonical ordering used whenever roles are listed
ALL_ROLES: tuple[Role, ...] = (
    Role.VIEWER,
    Role.ADVERTISER,
    Role.PUBLISHER,
    Role.ADMIN,
    Role.STAKEHOLDER,
)


class UserRole(Base):
    """A grant of one role to one user.

    Grants are deactivated on revoke, never deleted.
    """
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_id_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        index=True
    )
    role: Mapped[str] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Grants created by the development test-mode endpoints
    is_test_role: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="user_roles")
