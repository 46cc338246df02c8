"""
Auth Relay - Main Application

Multi-tenant authorization relay between a calling agent and a downstream API:
- OAuth 2.0 authorize/token relay to the downstream authorization server
- Per-request bearer token isolation via the request context store
- Downstream API dispatch authenticated by a pluggable auth provider
- OAuth discovery documents for the relay's own endpoints
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .core.auth_provider import BearerTokenAuthProvider, IAuthProvider, StaticAuthProvider
from .core.errors import (
    CredentialUnavailable,
    DownstreamHTTPError,
    RelayError,
)
from .core.request_context import RequestContextStore, get_request_context_store
from .infrastructure import DownstreamClient, OAuthRelay
from .api.middleware import RequestContextMiddleware
from .api.routes import relay_response, router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager for startup/shutdown events"""
    # Startup
    settings = app.state.settings
    logger.info("Starting auth-relay v1.0.0")
    logger.info(f"Downstream API: {settings.downstream_api_url}")
    logger.info(f"Outbound auth provider: {app.state.auth_provider.get_provider_name()}")
    logger.info(f"Public URL: {settings.resolved_public_url}")
    logger.info(f"Relay listening on {settings.relay_host}:{settings.relay_port}")

    yield

    # Shutdown
    logger.info("Shutting down auth-relay")
    await app.state.downstream_client.aclose()
    await app.state.oauth_relay.aclose()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RequestContextStore] = None,
    downstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Relay settings (defaults to environment configuration)
        store: Request context store (defaults to the process-wide store)
        downstream_transport: Optional httpx transport for all downstream
            traffic, used by tests to stand in for the downstream service

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    store = store or get_request_context_store()

    app = FastAPI(
        title="Auth Relay",
        description="Multi-tenant OAuth and bearer token relay",
        version="1.0.0",
        lifespan=lifespan,
    )

    auth_provider = _create_auth_provider(settings, store)

    app.state.settings = settings
    app.state.auth_provider = auth_provider
    app.state.downstream_client = DownstreamClient(
        base_url=settings.downstream_api_url,
        auth_provider=auth_provider,
        timeout=settings.downstream_timeout,
        transport=downstream_transport,
    )
    app.state.oauth_relay = OAuthRelay(
        authorization_base_url=settings.downstream_base_url,
        timeout=settings.downstream_timeout,
        transport=downstream_transport,
    )

    # Added first so CORS wraps it and preflights skip context setup
    app.add_middleware(RequestContextMiddleware, store=store)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    _register_exception_handlers(app, settings)

    app.include_router(router)

    return app


def _create_auth_provider(settings: Settings, store: RequestContextStore) -> IAuthProvider:
    """
    Create outbound auth provider based on configuration.

    Args:
        settings: Application settings
        store: Request context store read by the bearer provider

    Returns:
        Configured IAuthProvider implementation

    Raises:
        ValueError: If auth mode is not supported
    """
    if settings.auth_mode == "bearer":
        logger.info("Using bearer token provider (per-request caller credentials)")
        return BearerTokenAuthProvider(store)
    elif settings.auth_mode == "static":
        if not settings.static_auth_headers:
            logger.warning("Static auth provider configured without any headers")
        return StaticAuthProvider(settings.static_auth_headers)
    else:
        raise ValueError(f"Unsupported auth mode: {settings.auth_mode}")


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map relay errors to HTTP responses."""

    @app.exception_handler(DownstreamHTTPError)
    async def downstream_error_handler(request: Request, exc: DownstreamHTTPError):
        # Downstream verdicts (including 401/403) are relayed unchanged
        headers = exc.headers
        if not headers and exc.content_type:
            headers = [("content-type", exc.content_type)]
        return relay_response(exc.content, exc.status_code, headers)

    @app.exception_handler(CredentialUnavailable)
    async def credential_error_handler(request: Request, exc: CredentialUnavailable):
        resource_metadata = (
            f"{settings.resolved_public_url}/.well-known/oauth-protected-resource"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"WWW-Authenticate": f'Bearer resource_metadata="{resource_metadata}"'},
        )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    # Configure logging level from settings
    logging.getLogger().setLevel(settings.log_level)

    uvicorn.run(
        "auth_relay.main:app",
        host=settings.relay_host,
        port=settings.relay_port,
        log_level=settings.log_level.lower(),
    )
