from sqlalchemy import create_engine, inspect

from cloudshare.core.database import Base
from cloudshare.models import File, SharedLink  # noqa: F401
from cloudshare.scripts.db_migrate import migrate


def _tables(url: str) -> set[str]:
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_migrate_creates_schema(tmp_path):
    db = tmp_path / "fresh.db"

    migrate(f"sqlite+aiosqlite:///{db}")

    tables = _tables(f"sqlite:///{db}")
    assert {"files", "shared_links", "alembic_version"} <= tables


def test_migrate_is_repeatable(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'again.db'}"

    migrate(url)
    migrate(url)

    assert "shared_links" in _tables(f"sqlite:///{tmp_path / 'again.db'}")


def test_migrate_stamps_database_created_without_alembic(tmp_path):
    sync_url = f"sqlite:///{tmp_path / 'legacy.db'}"
    engine = create_engine(sync_url)
    Base.metadata.create_all(engine)
    engine.dispose()

    migrate(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")

    engine = create_engine(sync_url)
    try:
        with engine.connect() as conn:
            version = conn.exec_driver_sql("SELECT version_num FROM alembic_version").scalar()
    finally:
        engine.dispose()
    assert version == "20261001_01_shared_links"
