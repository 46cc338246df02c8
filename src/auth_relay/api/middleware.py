"""Request context middleware"""

import logging
from typing import Optional
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from ..core.credentials import context_from_headers
from ..core.request_context import RequestContextStore, get_request_context_store

logger = logging.getLogger(__name__)


class RequestContextMiddleware:
    """
    Establishes the per-request context before any handler runs.

    Flow:
    1. Extract the bearer token from the Authorization header (once)
    2. Build a fresh RequestContext for this request
    3. Run the rest of the ASGI call inside the context store
    4. Context is torn down once the app has finished with the request

    Written as plain ASGI so the extent covers the whole response, including
    streamed bodies and background tasks, not just the point where the
    response starts.

    A missing or malformed Authorization header is not rejected here. It only
    becomes an error if a downstream call later needs the caller's token.
    """

    def __init__(self, app: ASGIApp, store: Optional[RequestContextStore] = None):
        """
        Initialize request context middleware.

        Args:
            app: Wrapped ASGI application
            store: Context store (defaults to the process-wide store)
        """
        self.app = app
        self.store = store or get_request_context_store()
        logger.info("Initialized RequestContextMiddleware")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = context_from_headers(Headers(scope=scope))

        logger.debug(
            f"{scope.get('method')} {scope.get('path')} "
            f"(bearer token present: {context.bearer_token is not None})"
        )

        await self.store.run(context, self.app, scope, receive, send)
