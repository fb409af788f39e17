"""Initial schema: users, roles, and the poster library.

Revision ID: 001
Revises: None
Create Date: 2025-10-11
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("email", sa.Text, nullable=False, unique=True),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("display_name", sa.Text, nullable=False, server_default=""),
        sa.Column("is_active", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.Float, nullable=False),
        sa.Column("last_login_at", sa.Float),
    )

    # Roles live apart from users so a role check is a single-row lookup
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Text, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.Text, primary_key=True),
        sa.Column("created_at", sa.Float, nullable=False),
        sa.CheckConstraint("role IN ('user', 'admin')", name="ck_user_roles_role"),
    )
    op.create_index("idx_user_roles_role", "user_roles", ["role"])

    op.create_table(
        "posters",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("credit", sa.Text),
        sa.Column("license_status", sa.Text, nullable=False),
        sa.Column("dzi_path", sa.Text, nullable=False),
        sa.Column("thumb_url", sa.Text),
        sa.Column("created_by", sa.Text, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.Float, nullable=False),
        sa.CheckConstraint(
            "license_status IN ('demo_only', 'licensed', 'public_domain')",
            name="ck_posters_license_status",
        ),
    )


def downgrade() -> None:
    op.drop_table("posters")
    op.drop_index("idx_user_roles_role", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_table("users")
