"""Access policy for shared links.

``evaluate`` walks the states in a fixed order and the first failing
check wins:

1. no record            -> NOT_FOUND
2. revoked              -> REVOKED
3. past expires_at      -> EXPIRED
4. use count at max     -> EXHAUSTED (and the link gets revoked)
5. password missing     -> PASSWORD_REQUIRED
   password wrong       -> PASSWORD_INCORRECT
6. otherwise            -> ALLOWED

``evaluate`` itself never touches storage. ``AccessGate`` applies the one
transition the policy allows on a denial (revoke on exhaustion) and the
guarded increment after an allow.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from cloudshare.core import errors
from cloudshare.core.database import utcnow
from cloudshare.core.security import verify_password
from cloudshare.models.shared_link import SharedLink
from cloudshare.monitoring.setup import report_access

logger = logging.getLogger("cloudshare")


class AccessOutcome(str, enum.Enum):
    ALLOWED = "allowed"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_INCORRECT = "password_incorrect"


_DENIAL_ERRORS = {
    AccessOutcome.NOT_FOUND: errors.LinkNotFoundError,
    AccessOutcome.REVOKED: errors.LinkRevokedError,
    AccessOutcome.EXPIRED: errors.LinkExpiredError,
    AccessOutcome.EXHAUSTED: errors.LinkExhaustedError,
    AccessOutcome.PASSWORD_REQUIRED: errors.PasswordRequiredError,
    AccessOutcome.PASSWORD_INCORRECT: errors.PasswordIncorrectError,
}


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    revoke: bool = False

    @property
    def allowed(self) -> bool:
        return self.outcome is AccessOutcome.ALLOWED

    def error(self) -> errors.ShareLinkError:
        return _DENIAL_ERRORS[self.outcome]()


def evaluate(link: SharedLink | None, password: str | None, now: datetime) -> AccessDecision:
    if link is None:
        return AccessDecision(AccessOutcome.NOT_FOUND)
    if link.revoked:
        return AccessDecision(AccessOutcome.REVOKED)
    if link.expires_at is not None and now >= link.expires_at:
        return AccessDecision(AccessOutcome.EXPIRED)
    if link.max_access_count is not None and (link.access_count or 0) >= link.max_access_count:
        return AccessDecision(AccessOutcome.EXHAUSTED, revoke=True)
    if link.is_password_protected:
        if not password:
            return AccessDecision(AccessOutcome.PASSWORD_REQUIRED)
        if not verify_password(password, link.password_hash):
            return AccessDecision(AccessOutcome.PASSWORD_INCORRECT)
    return AccessDecision(AccessOutcome.ALLOWED)


class AccessGate:
    def __init__(self, registry) -> None:
        self.registry = registry

    async def check(self, token: str, password: str | None = None, now: datetime | None = None) -> SharedLink:
        """Return the link if it may be used right now, else raise the denial."""
        link = await self.registry.find_by_token(token)
        decision = evaluate(link, password, now or utcnow())
        if not decision.allowed:
            await self._deny(token, decision)
        return link

    async def commit(self, token: str, password: str | None = None, now: datetime | None = None) -> SharedLink:
        """Consume one use of a link that ``check`` allowed.

        If a concurrent request used up the link in between, the fresh
        record is evaluated again and that denial is raised instead.
        """
        now = now or utcnow()
        link = await self.registry.increment_access(token, now)
        if link is not None:
            report_access(AccessOutcome.ALLOWED.value)
            return link

        fresh = await self.registry.find_by_token(token)
        decision = evaluate(fresh, password, now)
        if decision.allowed:
            decision = AccessDecision(AccessOutcome.EXHAUSTED, revoke=True)
        await self._deny(token, decision)

    async def _deny(self, token: str, decision: AccessDecision) -> None:
        if decision.revoke:
            await self.registry.revoke(token)
        report_access(decision.outcome.value)
        logger.info("Share link access denied: %s", decision.outcome.value)
        raise decision.error()
