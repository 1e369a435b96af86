"""Create user_2fa table

Revision ID: a1c4e7f2b9d3
Revises:
Create Date: 2026-10-18 09:00:00.000000

Adds:
- user_2fa table holding each user's TOTP secret, enabled flag and
  remaining backup codes, with a version counter for conditional updates
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1c4e7f2b9d3"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_2fa",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("secret", sa.String(128), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("backup_codes", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("enabled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_user_2fa_id", "user_2fa", ["id"], unique=False)
    op.create_index("ix_user_2fa_user_id", "user_2fa", ["user_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_user_2fa_user_id", table_name="user_2fa")
    op.drop_index("ix_user_2fa_id", table_name="user_2fa")
    op.drop_table("user_2fa")
