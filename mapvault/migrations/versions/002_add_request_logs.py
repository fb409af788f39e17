"""Add request_logs table for per-subject rate limiting.

Revision ID: 002
Revises: 001
Create Date: 2025-10-12
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "request_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("endpoint", sa.Text, nullable=False),
        sa.Column("created_at", sa.Float, nullable=False),
        sa.Column("response_time_ms", sa.Integer),
    )
    # Window counts filter on all three columns
    op.create_index(
        "idx_request_logs_user_endpoint", "request_logs",
        ["user_id", "endpoint", "created_at"],
    )
    op.create_index("idx_request_logs_created", "request_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_request_logs_created", table_name="request_logs")
    op.drop_index("idx_request_logs_user_endpoint", table_name="request_logs")
    op.drop_table("request_logs")
