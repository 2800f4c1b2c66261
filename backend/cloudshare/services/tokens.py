from __future__ import annotations

import logging
import secrets
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from cloudshare.core.config import settings
from cloudshare.core.database import to_utc_naive
from cloudshare.core.errors import TokenGenerationError
from cloudshare.core.security import get_password_hash
from cloudshare.models.shared_link import SharedLink

logger = logging.getLogger("cloudshare")

MAX_TOKEN_ATTEMPTS = 3
MIN_TOKEN_BYTES = 16
# base64url of 48 bytes is exactly 64 characters, the width of shared_links.token
MAX_TOKEN_BYTES = 48


def generate_token(nbytes: int | None = None) -> str:
    """Return a base64url token carrying 16 to 48 random bytes."""
    nbytes = min(MAX_TOKEN_BYTES, max(MIN_TOKEN_BYTES, nbytes or settings.SHARE_TOKEN_BYTES))
    try:
        return secrets.token_urlsafe(nbytes)
    except (NotImplementedError, OSError) as e:
        logger.error("Entropy source unavailable: %s", e)
        raise TokenGenerationError() from e


class LinkIssuer:
    def __init__(self, registry, token_bytes: int | None = None) -> None:
        self.registry = registry
        self.token_bytes = token_bytes

    async def issue(
        self,
        file_id: int,
        user_id: int | None = None,
        password: str | None = None,
        expires_at: datetime | None = None,
        max_access_count: int | None = None,
    ) -> SharedLink:
        # expiry is only enforced at access time, a past value is accepted here
        if max_access_count is not None and max_access_count < 1:
            raise ValueError("max_access_count must be at least 1")

        password_hash = get_password_hash(password) if password else None

        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            link = SharedLink(
                file_id=file_id,
                user_id=user_id,
                token=generate_token(self.token_bytes),
                password_hash=password_hash,
                expires_at=to_utc_naive(expires_at),
                max_access_count=max_access_count,
                access_count=0,
                revoked=False,
            )
            try:
                return await self.registry.create(link)
            except IntegrityError:
                logger.warning("Share token collision (attempt %s/%s)", attempt, MAX_TOKEN_ATTEMPTS)
        raise TokenGenerationError("Could not allocate a unique share token")
