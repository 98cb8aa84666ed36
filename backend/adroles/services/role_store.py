"""Durable record of which roles a user holds and which one is current."""

import logging
import uuid
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adroles.errors import InvariantViolation, NotGranted, UserNotFound
from adroles.models.role import Role, UserRole, ALL_ROLES
from adroles.models.user import User

logger = logging.getLogger(__name__)


class RoleStore:
    """Reads and writes role grants through an async SQLAlchemy session.

    Each public write is its own unit of work and commits before returning.
    Database errors propagate unchanged; nothing here retries.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ---- users ----

    async def create_user(self, pubkey: str, display_name: str | None = None) -> User:
        """Create a user with no grants and no current role."""
        user = User(id=uuid.uuid4(), pubkey=pubkey, display_name=display_name)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("Created user %s (pubkey=%s)", user.id, pubkey)
        return user

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    async def get_user_by_pubkey(self, pubkey: str) -> User | None:
        result = await self.db.execute(select(User).where(User.pubkey == pubkey))
        return result.scalar_one_or_none()

    # ---- grants ----

    async def _get_grant(self, user_id: uuid.UUID, role: Role) -> UserRole | None:
        result = await self.db.execute(
            select(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role == role.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_grants(self, user_id: uuid.UUID) -> list[UserRole]:
        """All grants for a user, active or not."""
        await self.get_user(user_id)
        result = await self.db.execute(
            select(UserRole)
            .where(UserRole.user_id == user_id)
            .order_by(UserRole.role)
        )
        return list(result.scalars().all())

    async def list_active_roles(self, user_id: uuid.UUID) -> set[Role]:
        await self.get_user(user_id)
        result = await self.db.execute(
            select(UserRole.role).where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
            )
        )
        roles = set()
        for value in result.scalars().all():
            try:
                roles.add(Role(value))
            except ValueError:
                logger.warning("Ignoring unknown role %r granted to user %s", value, user_id)
        return roles

    async def grant_role(self, user_id: uuid.UUID, role: Role, is_test_role: bool = False) -> UserRole:
        """Grant *role* to the user. Idempotent; reactivates revoked grants."""
        role = Role(role)
        await self.get_user(user_id)

        grant = await self._get_grant(user_id, role)
        if grant is None:
            grant = UserRole(
                id=uuid.uuid4(),
                user_id=user_id,
                role=role.value,
                is_active=True,
                is_test_role=is_test_role,
            )
            self.db.add(grant)
            logger.info("Granted role %s to user %s", role.value, user_id)
        elif not grant.is_active:
            grant.is_active = True
            grant.is_test_role = is_test_role
            grant.updated_at = datetime.utcnow()
            logger.info("Reactivated role %s for user %s", role.value, user_id)
        elif grant.is_test_role and not is_test_role:
            # A real grant replaces a test-only one
            grant.is_test_role = False
            grant.updated_at = datetime.utcnow()
            logger.info("Converted test grant %s to a real grant for user %s", role.value, user_id)
        else:
            return grant

        await self.db.commit()
        await self.db.refresh(grant)
        return grant

    async def revoke_role(self, user_id: uuid.UUID, role: Role) -> UserRole | None:
        """Deactivate a grant. The last active grant cannot be revoked."""
        role = Role(role)
        active = await self.list_active_roles(user_id)
        if role not in active:
            return await self._get_grant(user_id, role)

        if active == {role}:
            raise InvariantViolation(
                f"Cannot revoke '{role.value}': it is the user's last active role. "
                "Grant 'viewer' first.",
                user_id=str(user_id),
                role=role.value,
            )

        grant = await self._get_grant(user_id, role)
        grant.is_active = False
        grant.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(grant)
        logger.info("Revoked role %s from user %s", role.value, user_id)
        return grant

    async def grant_all_roles(self, user_id: uuid.UUID) -> set[Role]:
        """Grant every role as a test grant and flag the user as a test user."""
        user = await self.get_user(user_id)
        for role in ALL_ROLES:
            grant = await self._get_grant(user_id, role)
            if grant is None:
                self.db.add(UserRole(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    role=role.value,
                    is_active=True,
                    is_test_role=True,
                ))
            elif not grant.is_active:
                grant.is_active = True
                grant.is_test_role = True
                grant.updated_at = datetime.utcnow()

        user.is_test_user = True
        user.updated_at = datetime.utcnow()
        await self.db.commit()
        logger.warning("Granted all roles to user %s for test mode", user_id)
        return set(ALL_ROLES)

    # ---- current role ----

    async def get_stored_current_role(self, user_id: uuid.UUID) -> str | None:
        user = await self.get_user(user_id)
        return user.current_role

    async def set_current_role(
        self,
        user_id: uuid.UUID,
        role: Role,
        test_mode_active: bool = False,
    ) -> User:
        """Make *role* the user's active role.

        Outside test mode the role must be among the user's active grants.
        """
        role = Role(role)
        user = await self.get_user(user_id)

        if not test_mode_active:
            active = await self.list_active_roles(user_id)
            if role not in active:
                raise NotGranted(
                    f"User does not have access to role: {role.value}",
                    user_id=str(user_id),
                    role=role.value,
                )

        previous = user.current_role
        user.previous_role = previous
        user.current_role = role.value
        user.last_role_change = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(
            "User %s switched role %s -> %s%s",
            user_id,
            previous or "none",
            role.value,
            " (test mode)" if test_mode_active else "",
        )
        return user
