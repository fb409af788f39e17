"""Add base_maps and overlays with layering fields.

Revision ID: 003
Revises: 002
Create Date: 2025-10-13
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "base_maps",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("region", sa.Text),
        sa.Column("file_path", sa.Text, nullable=False),
        sa.Column("attribution", sa.Text),
        sa.Column("license", sa.Text),
        sa.Column("source_url", sa.Text),
        sa.Column("canonical_width", sa.Integer),
        sa.Column("canonical_height", sa.Integer),
        sa.Column("print_dpi", sa.Integer, server_default="600"),
        sa.Column("projection", sa.Text),
        sa.Column("registration_json", sa.Text),
        sa.Column("uploaded_by", sa.Text, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.Float, nullable=False),
    )

    op.create_table(
        "overlays",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("base_map_id", sa.Text, sa.ForeignKey("base_maps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("theme", sa.Text, nullable=False),
        sa.Column("year", sa.Integer),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("z_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("width_px", sa.Integer),
        sa.Column("height_px", sa.Integer),
        sa.Column("format", sa.Text, nullable=False, server_default="png"),
        sa.Column("file_path", sa.Text, nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("author", sa.Text, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.Float, nullable=False),
        sa.CheckConstraint("format IN ('png', 'svg', 'geojson')", name="ck_overlays_format"),
    )
    op.create_index("idx_overlays_base_map_z_index", "overlays", ["base_map_id", "z_index"])
    op.create_index("idx_overlays_year", "overlays", ["base_map_id", "year"])


def downgrade() -> None:
    op.drop_index("idx_overlays_year", table_name="overlays")
    op.drop_index("idx_overlays_base_map_z_index", table_name="overlays")
    op.drop_table("overlays")
    op.drop_table("base_maps")
