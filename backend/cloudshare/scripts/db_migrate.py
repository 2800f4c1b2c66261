import logging
import os
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from cloudshare.core.database import DATABASE_URL

logger = logging.getLogger("cloudshare")

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
ALEMBIC_INI = os.path.join(BACKEND_DIR, "alembic.ini")


def alembic_config(database_url: str = DATABASE_URL) -> Config:
    cfg = Config(ALEMBIC_INI)
    cfg.set_main_option("script_location", os.path.join(BACKEND_DIR, "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["configure_logger"] = False
    return cfg


def migrate(database_url: str = DATABASE_URL) -> None:
    sync_url = database_url.replace("+aiosqlite", "")
    engine = create_engine(sync_url)
    try:
        insp = inspect(engine)
        has_alembic = insp.has_table("alembic_version")
        existing_core_tables = any(insp.has_table(t) for t in ("files", "shared_links"))
    finally:
        engine.dispose()

    cfg = alembic_config(database_url)
    if existing_core_tables and not has_alembic:
        logger.info("[db-migrate] Existing tables detected without alembic_version, stamping head")
        command.stamp(cfg, "head")
    else:
        logger.info("[db-migrate] has_alembic=%s, existing_core_tables=%s", has_alembic, existing_core_tables)

    command.upgrade(cfg, "head")


def main():
    logging.basicConfig(level=logging.INFO)
    migrate()

if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print(f"[db-migrate] Migration failed: {e}", file=sys.stderr)
        sys.exit(1)
