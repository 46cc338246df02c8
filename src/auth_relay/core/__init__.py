"""Core domain: request context, credentials, auth providers and errors"""

from .auth_provider import (
    BearerTokenAuthProvider,
    IAuthProvider,
    StaticAuthProvider,
    is_auth_error,
)
from .credentials import context_from_headers, extract_bearer_token
from .errors import (
    AuthenticationRejected,
    CredentialUnavailable,
    DownstreamHTTPError,
    DownstreamUnavailable,
    InvalidRequest,
    RelayError,
)
from .request_context import (
    RequestContext,
    RequestContextStore,
    get_request_context_store,
)

__all__ = [
    "AuthenticationRejected",
    "BearerTokenAuthProvider",
    "CredentialUnavailable",
    "DownstreamHTTPError",
    "DownstreamUnavailable",
    "IAuthProvider",
    "InvalidRequest",
    "RelayError",
    "RequestContext",
    "RequestContextStore",
    "StaticAuthProvider",
    "context_from_headers",
    "extract_bearer_token",
    "get_request_context_store",
    "is_auth_error",
]
