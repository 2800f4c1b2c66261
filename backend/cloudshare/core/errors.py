"""Typed failures of the shared-link subsystem.

Every error carries the HTTP status it maps to and a stable ``reason``
code that clients can switch on. The API layer turns them into responses
in one place (see ``cloudshare.main``).
"""

from __future__ import annotations


class ShareLinkError(Exception):
    status_code: int = 400
    reason: str = "share_link_error"
    message: str = "Share link error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class LinkNotFoundError(ShareLinkError):
    status_code = 404
    reason = "not_found"
    message = "Link not found"


class LinkRevokedError(ShareLinkError):
    status_code = 404
    reason = "revoked"
    message = "Link has been revoked"


class LinkExpiredError(ShareLinkError):
    status_code = 410
    reason = "expired"
    message = "Link expired"


class LinkExhaustedError(ShareLinkError):
    status_code = 410
    reason = "exhausted"
    message = "Max access reached"


class PasswordRequiredError(ShareLinkError):
    status_code = 401
    reason = "password_required"
    message = "Password required"


class PasswordIncorrectError(ShareLinkError):
    status_code = 401
    reason = "password_incorrect"
    message = "Password incorrect"


class UnderlyingFileMissingError(ShareLinkError):
    # clients only ever see a plain not-found
    status_code = 404
    reason = "not_found"
    message = "File not found"

    def __init__(self, file_id: int) -> None:
        self.file_id = file_id
        super().__init__()


class RangeUnsatisfiableError(ShareLinkError):
    status_code = 416
    reason = "range_unsatisfiable"
    message = "Requested range not satisfiable"

    def __init__(self, total_size: int) -> None:
        self.total_size = total_size
        super().__init__()


class StorageUnavailableError(ShareLinkError):
    status_code = 500
    reason = "storage_unavailable"
    message = "Storage is temporarily unavailable"


class FileAccessDeniedError(ShareLinkError):
    status_code = 403
    reason = "forbidden"
    message = "Access denied"


class TokenGenerationError(ShareLinkError):
    status_code = 500
    reason = "token_generation_failed"
    message = "Could not generate a share token"
