from functools import lru_cache

from cloudshare.core.database import SessionLocal
from cloudshare.services.files import SqlFileCatalog
from cloudshare.services.registry import SqlLinkRegistry
from cloudshare.services.shared_links import SharedLinkService


@lru_cache(maxsize=1)
def get_link_service() -> SharedLinkService:
    """Process-wide service, built once over the shared session factory."""
    return SharedLinkService(
        registry=SqlLinkRegistry(SessionLocal),
        files=SqlFileCatalog(SessionLocal),
    )
