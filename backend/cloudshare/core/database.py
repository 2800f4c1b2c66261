from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from .config import settings

DATABASE_URL = settings.DATABASE_URL


def build_engine(url: str, echo: bool = False):
    connect_args = {}
    if url.startswith("sqlite"):
        # concurrent writers wait on the sqlite lock instead of failing
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_async_engine(
        url,
        connect_args=connect_args,
        poolclass=NullPool,
        echo=echo,
    )


def build_sessionmaker(bind) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(DATABASE_URL, echo=settings.DATABASE_ECHO)

SessionLocal = build_sessionmaker(engine)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
