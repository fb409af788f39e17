#  Map Vault - SQLAlchemy Table Metadata
#
#  Declarative Table definitions for Alembic autogenerate.
#  These mirror the SQLite schema but are NOT used at runtime;
#  the app still uses raw SQL via aiosqlite.
#
#  Depends on: (none)
#  Used by:    migrations/env.py (Alembic autogenerate)

from sqlalchemy import (
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Text, primary_key=True),
    Column("email", Text, nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("display_name", Text, nullable=False, server_default=""),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", Float, nullable=False),
    Column("last_login_at", Float),
)

user_roles = Table(
    "user_roles",
    metadata,
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role", Text, primary_key=True),
    Column("created_at", Float, nullable=False),
    CheckConstraint("role IN ('user', 'admin')", name="ck_user_roles_role"),
    Index("idx_user_roles_role", "role"),
)

request_logs = Table(
    "request_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Text, nullable=False),
    Column("endpoint", Text, nullable=False),
    Column("created_at", Float, nullable=False),
    Column("response_time_ms", Integer),
    Index("idx_request_logs_user_endpoint", "user_id", "endpoint", "created_at"),
    Index("idx_request_logs_created", "created_at"),
)

posters = Table(
    "posters",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("credit", Text),
    Column("license_status", Text, nullable=False),
    Column("dzi_path", Text, nullable=False),
    Column("thumb_url", Text),
    Column("created_by", Text, ForeignKey("users.id", ondelete="SET NULL")),
    Column("created_at", Float, nullable=False),
    CheckConstraint(
        "license_status IN ('demo_only', 'licensed', 'public_domain')",
        name="ck_posters_license_status",
    ),
)

base_maps = Table(
    "base_maps",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("region", Text),
    Column("file_path", Text, nullable=False),
    Column("attribution", Text),
    Column("license", Text),
    Column("source_url", Text),
    Column("canonical_width", Integer),
    Column("canonical_height", Integer),
    Column("print_dpi", Integer, server_default="600"),
    Column("projection", Text),
    Column("registration_json", Text),
    Column("uploaded_by", Text, ForeignKey("users.id", ondelete="SET NULL")),
    Column("created_at", Float, nullable=False),
)

overlays = Table(
    "overlays",
    metadata,
    Column("id", Text, primary_key=True),
    Column("base_map_id", Text, ForeignKey("base_maps.id", ondelete="CASCADE"), nullable=False),
    Column("theme", Text, nullable=False),
    Column("year", Integer),
    Column("title", Text, nullable=False, server_default=""),
    Column("z_index", Integer, nullable=False, server_default="0"),
    Column("width_px", Integer),
    Column("height_px", Integer),
    Column("format", Text, nullable=False, server_default="png"),
    Column("file_path", Text, nullable=False),
    Column("notes", Text),
    Column("author", Text, ForeignKey("users.id", ondelete="SET NULL")),
    Column("created_at", Float, nullable=False),
    CheckConstraint("format IN ('png', 'svg', 'geojson')", name="ck_overlays_format"),
    Index("idx_overlays_base_map_z_index", "base_map_id", "z_index"),
    Index("idx_overlays_year", "base_map_id", "year"),
)

chat_history = Table(
    "chat_history",
    metadata,
    Column("id", Text, primary_key=True),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("question", Text, nullable=False),
    Column("answer", Text, nullable=False),
    Column("created_at", Float, nullable=False),
    Index("idx_chat_history_user_created", "user_id", "created_at"),
)
