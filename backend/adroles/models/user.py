"""User model with current-role tracking."""

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from adroles.db.postgres import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    pubkey: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_test_user: Mapped[bool] = mapped_column(Boolean, default=False)

    # Role currently active in the UI/session, plus audit of the last switch
    current_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    previous_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_role_change: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user_roles = relationship("UserRole", back_populates="user")
