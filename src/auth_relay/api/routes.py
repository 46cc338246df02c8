"""API routes for discovery, OAuth relay and downstream API dispatch"""

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Tuple
from urllib.parse import quote, unquote_to_bytes
from fastapi import APIRouter, Request, Response
from fastapi.responses import RedirectResponse

from ..core.errors import InvalidRequest

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "auth-relay"
SERVICE_VERSION = "1.0.0"

API_PREFIX = "/api/"

# Never forwarded from the caller to the downstream API
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",  # Will be set by httpx
    "content-length",
    "authorization",  # Supplied by the auth provider
}

# Stripped from downstream responses before relaying them back
RESPONSE_EXCLUDED_HEADERS = {
    "connection",
    "keep-alive",
    "transfer-encoding",
    "content-encoding",
    "content-length",
}


@router.get("/.well-known/oauth-protected-resource")
async def protected_resource_metadata(request: Request) -> Dict[str, Any]:
    """OAuth protected resource metadata (RFC 9728)"""
    public_url = request.app.state.settings.resolved_public_url
    return {
        "resource": public_url,
        "authorization_servers": [public_url],
        "bearer_methods_supported": ["header"],
    }


@router.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata(request: Request) -> Dict[str, Any]:
    """OAuth authorization server metadata (RFC 8414)"""
    public_url = request.app.state.settings.resolved_public_url
    return {
        "issuer": public_url,
        "authorization_endpoint": f"{public_url}/oauth/authorize",
        "token_endpoint": f"{public_url}/oauth/token",
        "grant_types_supported": ["authorization_code", "client_credentials"],
        "response_types_supported": ["code"],
        "token_endpoint_auth_methods_supported": [
            "client_secret_post",
            "client_secret_basic",
        ],
    }


@router.get("/oauth/authorize")
async def authorize(request: Request) -> Response:
    """
    OAuth 2.0 authorization endpoint.

    Redirects the caller to the downstream authorization page with the same
    parameters. Rejects the request before redirecting if client_id,
    redirect_uri or state is missing.
    """
    oauth_relay = request.app.state.oauth_relay
    target = oauth_relay.build_authorize_url(request.query_params)
    return RedirectResponse(url=target, status_code=302)


@router.post("/oauth/token")
async def token(request: Request) -> Response:
    """
    OAuth 2.0 token endpoint.

    Accepts JSON or form-encoded bodies and forwards them form-encoded to the
    downstream token endpoint. The downstream status and body are returned
    as-is, including error responses such as invalid_grant.
    """
    form = await _read_token_request(request)
    result = await request.app.state.oauth_relay.exchange_token(form)
    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.media_type or "application/json",
    )


@router.api_route(
    "/api/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
)
async def dispatch_api(request: Request, path: str) -> Response:
    """
    Dispatch an API call to the downstream service.

    Outbound credentials come from the configured auth provider, which reads
    the current request context; the caller's Authorization header is never
    copied over directly.
    """
    downstream = request.app.state.downstream_client

    headers = {
        name: value
        for name, value in request.headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    }
    body = await request.body()

    downstream_response = await downstream.issue(
        request.method,
        _downstream_path(request),
        headers=headers,
        body=body or None,
        params=list(request.query_params.multi_items()),
    )

    return relay_response(
        downstream_response.content,
        downstream_response.status_code,
        downstream_response.headers.multi_items(),
    )


def relay_response(
    content: bytes,
    status_code: int,
    headers: Iterable[Tuple[str, str]],
) -> Response:
    """
    Build a response carrying a downstream body and headers.

    Repeated headers (e.g. Set-Cookie) are kept as separate entries.
    """
    response = Response(content=content, status_code=status_code)
    for name, value in headers:
        if name.lower() not in RESPONSE_EXCLUDED_HEADERS:
            response.headers.append(name, value)
    return response


def _downstream_path(request: Request) -> str:
    """
    Rebuild the downstream path from the raw, still-encoded request path.

    Each segment is re-encoded on its own so encoded '/', '?' or '#' stay
    data. Dot segments, encoded or not, are rejected so the path cannot
    leave the downstream API prefix.

    Raises:
        InvalidRequest: If the path contains '.' or '..' segments
    """
    raw_path = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
    # Some servers include the query string in raw_path
    path = raw_path.split(b"?", 1)[0]

    prefix = API_PREFIX.encode("ascii")
    path = path[len(prefix):] if path.startswith(prefix) else b""

    segments = []
    for segment in path.split(b"/"):
        decoded = unquote_to_bytes(segment)
        if any(part in (b".", b"..") for part in decoded.split(b"/")):
            raise InvalidRequest("Path must not contain '.' or '..' segments")
        segments.append(quote(decoded, safe=""))

    return "/" + "/".join(segments)


@router.get("/status")
async def status_check(request: Request) -> Dict[str, Any]:
    """Relay status with an echo of the downstream configuration"""
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "downstream": {
            "base_url": settings.downstream_base_url,
            "api_version": settings.downstream_api_version,
            "api_url": settings.downstream_api_url,
        },
        "public_url": settings.resolved_public_url,
        "auth_provider": request.app.state.auth_provider.get_provider_name(),
    }


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Only verifies the relay process is running and responsive; it does not
    contact the downstream service.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


@router.get("/")
async def server_info(request: Request) -> Dict[str, Any]:
    """Server info with a map of the public endpoints"""
    public_url = request.app.state.settings.resolved_public_url
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": "Multi-tenant authorization relay",
        "endpoints": {
            "api": f"{public_url}/api",
            "oauth": {
                "authorize": f"{public_url}/oauth/authorize",
                "token": f"{public_url}/oauth/token",
                "discovery": f"{public_url}/.well-known/oauth-authorization-server",
            },
            "status": f"{public_url}/status",
        },
    }


async def _read_token_request(request: Request) -> Dict[str, str]:
    """
    Read token request fields from a JSON or form-encoded body.

    Client credentials sent with HTTP Basic (client_secret_basic) fill in
    client_id/client_secret when the body does not carry them.

    Raises:
        InvalidRequest: If the body or Basic credentials cannot be parsed
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise InvalidRequest("Request body is not valid JSON")
        if not isinstance(payload, dict):
            raise InvalidRequest("Request body must be a JSON object")
        form = {k: v for k, v in payload.items() if v is not None}
    else:
        form = dict(await request.form())

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "basic" and not form.get("client_secret"):
        client_id, client_secret = _decode_basic_credentials(credentials.strip())
        form.setdefault("client_id", client_id)
        form["client_secret"] = client_secret

    return form


def _decode_basic_credentials(credentials: str) -> tuple[str, str]:
    try:
        decoded = base64.b64decode(credentials, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise InvalidRequest("Malformed Basic client credentials")

    client_id, sep, client_secret = decoded.partition(":")
    if not sep:
        raise InvalidRequest("Malformed Basic client credentials")
    return client_id, client_secret
