from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context

from cloudshare.core.database import DATABASE_URL, Base
from cloudshare.models import File, SharedLink  # noqa: F401

config = context.config

if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _sync_url() -> str:
    """Alembic runs synchronously, so drop the async driver from the app URL."""
    url = config.get_main_option("sqlalchemy.url") or DATABASE_URL
    return url.replace("+aiosqlite", "")


def run_migrations_offline():
    """Run migrations in 'offline' mode."""
    context.configure(
        url=_sync_url(), target_metadata=target_metadata, literal_binds=True, dialect_opts={"paramstyle": "named"},
        compare_type=True, compare_server_default=True
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode using a sync engine."""
    connectable = create_engine(_sync_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
