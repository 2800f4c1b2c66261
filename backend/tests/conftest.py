# tests/conftest.py

import os
import tempfile
import uuid

_TEST_DIR = tempfile.mkdtemp(prefix="cloudshare-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'app.db')}")
os.environ.setdefault("CLEANUP_ENABLED", "false")
os.environ.setdefault("MINIO_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-bytes")

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from cloudshare.core.config import settings
from cloudshare.core.database import Base, build_engine, build_sessionmaker
from cloudshare.dependencies import get_link_service
from cloudshare.main import app
from cloudshare.models.file import File
from cloudshare.services.files import SqlFileCatalog
from cloudshare.services.registry import SqlLinkRegistry
from cloudshare.services.shared_links import SharedLinkService


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def registry(session_factory):
    return SqlLinkRegistry(session_factory)


@pytest.fixture
def service(session_factory, registry):
    # small chunks so every download spans several reads
    return SharedLinkService(
        registry=registry,
        files=SqlFileCatalog(session_factory),
        metadata_counts_access=True,
        chunk_size=64,
    )


@pytest.fixture
def make_file(session_factory, tmp_path):
    async def _make(
        content: bytes = b"hello world",
        name: str = "report.pdf",
        mime_type: str = "application/pdf",
        user_id: int | None = None,
        on_disk: bool = True,
    ) -> File:
        path = tmp_path / f"blob-{uuid.uuid4().hex}"
        if on_disk:
            path.write_bytes(content)
        async with session_factory() as db:
            f = File(
                filename=path.name,
                original_filename=name,
                path=str(path),
                size=len(content),
                mime_type=mime_type,
                user_id=user_id,
            )
            db.add(f)
            await db.commit()
            await db.refresh(f)
            return f

    return _make


@pytest.fixture
async def client(service):
    app.dependency_overrides[get_link_service] = lambda: service
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id: int, admin: bool = False) -> dict:
        token = jwt.encode({"sub": str(user_id), "admin": admin}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        return {"Authorization": f"Bearer {token}"}

    return _headers
