from fastapi import Request

from cloudshare.core.config import settings


def _forwarded_origin(header: str) -> str | None:
    # only the hop closest to the client matters
    first_hop = header.split(",", 1)[0]
    params = {}
    for part in first_hop.split(";"):
        key, sep, value = part.partition("=")
        if sep:
            params[key.strip().lower()] = value.strip().strip('"')
    if params.get("proto") and params.get("host"):
        return f"{params['proto']}://{params['host']}"
    return None


def external_base_url(request: Request) -> str:
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")

    forwarded = request.headers.get("forwarded")
    if forwarded:
        origin = _forwarded_origin(forwarded)
        if origin:
            return origin.rstrip("/")

    proto = request.headers.get("x-forwarded-proto")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    if proto and host:
        return f"{proto}://{host}".rstrip("/")

    return str(request.base_url).rstrip("/")


def build_external_url(request: Request, path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    return external_base_url(request) + path


def shared_link_url(request: Request, token: str) -> str:
    return build_external_url(request, f"{settings.API_PREFIX.rstrip('/')}/shared/{token}")
