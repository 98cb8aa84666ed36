"""Backfill the baseline viewer grant and current role

Revision ID: 002_backfill_viewer_grants
Revises: 001_initial
Create Date: 2025-05-14

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_backfill_viewer_grants'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Every user keeps an active viewer grant
    op.execute(
        """
        INSERT INTO user_roles (id, user_id, role, is_active, is_test_role, created_at, updated_at)
        SELECT gen_random_uuid(), u.id, 'viewer', true, false, now(), now()
        FROM users u
        WHERE NOT EXISTS (
            SELECT 1 FROM user_roles ur
            WHERE ur.user_id = u.id AND ur.role = 'viewer'
        )
        """
    )
    op.execute(
        """
        UPDATE user_roles SET is_active = true, updated_at = now()
        WHERE role = 'viewer' AND is_active = false
        """
    )

    users_table = sa.table(
        'users',
        sa.column('current_role', sa.String(20)),
    )
    op.execute(
        users_table.update()
        .where(users_table.c.current_role.is_(None))
        .values(current_role='viewer')
    )


def downgrade() -> None:
    # Grants created here are indistinguishable from real ones; nothing to undo.
    pass
