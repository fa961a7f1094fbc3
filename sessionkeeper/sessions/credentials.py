"""Session credential extraction from request cookies and headers."""

from typing import Optional

from starlette.requests import HTTPConnection

from sessionkeeper.core.security import is_well_formed_session_id

BEARER_SCHEME = "bearer"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of a ``Bearer <token>`` header value, if any"""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    return token.strip() or None


def extract_session_id(request: HTTPConnection, cookie_name: str) -> Optional[str]:
    """
    Read the candidate session id, cookie first, then bearer token.

    The first non-empty value wins. A winning value that could not have been
    issued by us is treated as no credential at all.
    """
    candidate = request.cookies.get(cookie_name) or bearer_token(
        request.headers.get("authorization")
    )
    if candidate and is_well_formed_session_id(candidate):
        return candidate
    return None
