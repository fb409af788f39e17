#  Map Vault - Alembic Environment
#
#  Schema history for the vault database: accounts and roles, the poster
#  library, the request log behind edge quotas, base maps and overlays.
#  The app passes its database URL in through db/migrate.py; the alembic
#  CLI falls back to the configured DB_PATH. Runs on a sync engine so it
#  can be called from a worker thread during startup.
#
#  Depends on: mapvault/db/models_metadata.py, mapvault/config.py
#  Used by:    alembic CLI, mapvault/db/migrate.py

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from mapvault.config import DB_PATH
from mapvault.db.models_metadata import metadata as target_metadata

config = context.config

# Keep the app's loggers alive when migrations run at startup
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or f"sqlite:///{DB_PATH}"


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,  # SQLite has no ALTER COLUMN
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the SQL for pending revisions without touching the database."""
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _configure(connection=connection)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
