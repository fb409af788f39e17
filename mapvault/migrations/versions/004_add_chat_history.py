"""Add chat_history for the historian Q&A archive.

Revision ID: 004
Revises: 003
Create Date: 2025-10-14
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "chat_history",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column(
            "user_id", sa.Text,
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("question", sa.Text, nullable=False),
        sa.Column("answer", sa.Text, nullable=False),
        sa.Column("created_at", sa.Float, nullable=False),
    )
    # Listing is always one user's entries, newest first
    op.create_index("idx_chat_history_user_created", "chat_history", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_chat_history_user_created", table_name="chat_history")
    op.drop_table("chat_history")
