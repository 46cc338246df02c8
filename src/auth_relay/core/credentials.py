"""Bearer credential extraction from inbound Authorization headers"""

from typing import Optional

from .request_context import RequestContext

BEARER_SCHEME = "bearer"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header value.

    Expected format: "Bearer <token>". The scheme is matched
    case-insensitively; the token itself is not validated.

    Args:
        authorization: Raw Authorization header value, if any

    Returns:
        Token string, or None when the header is absent, uses another
        scheme, or carries an empty token
    """
    if not authorization:
        return None

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None

    token = token.strip()
    return token or None


def context_from_headers(headers) -> RequestContext:
    """Build a fresh RequestContext from an inbound header mapping."""
    return RequestContext(bearer_token=extract_bearer_token(headers.get("authorization")))
