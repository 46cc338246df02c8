"""Request-scoped context store.

Associates a RequestContext with the dynamic extent of one inbound request's
handling. The context lives in a ContextVar, so it follows the request across
every await and into any asyncio task spawned while it is active (tasks copy
the context they were created in). Each OS thread starts with its own empty
context, so threads running separate event loops cannot see each other's
values either.
"""

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from threading import Lock
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RequestContext:
    """Per-request data available to code running inside the request"""

    bearer_token: Optional[str] = None


class RequestContextStore:
    """
    Process-wide store of the active request contexts.

    Usage:
        store = get_request_context_store()

        async def handle():
            ctx = store.current()  # the context passed to run()

        await store.run(RequestContext(bearer_token="abc"), handle)

    The store itself holds no per-request state apart from the ContextVar
    slot. active_count tracks how many extents are currently open and is only
    used for monitoring and tests.
    """

    def __init__(self, name: str = "request_context"):
        self._current: ContextVar[Optional[RequestContext]] = ContextVar(
            name, default=None
        )
        self._active = 0
        self._lock = Lock()

    def current(self) -> Optional[RequestContext]:
        """Return the context of the enclosing request, or None outside any request."""
        return self._current.get()

    @property
    def active_count(self) -> int:
        """Number of request extents currently open"""
        with self._lock:
            return self._active

    async def run(
        self,
        context: RequestContext,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Await fn with context installed as the current request context.

        Args:
            context: Context owned by this request
            fn: Coroutine function to run
            *args: Positional arguments for fn
            **kwargs: Keyword arguments for fn

        Returns:
            Whatever fn returns
        """
        token = self._current.set(context)
        self._enter()
        try:
            return await fn(*args, **kwargs)
        finally:
            self._current.reset(token)
            self._exit()

    def run_sync(
        self,
        context: RequestContext,
        fn: Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Synchronous counterpart of run()"""
        token = self._current.set(context)
        self._enter()
        try:
            return fn(*args, **kwargs)
        finally:
            self._current.reset(token)
            self._exit()

    def _enter(self) -> None:
        with self._lock:
            self._active += 1

    def _exit(self) -> None:
        with self._lock:
            self._active -= 1


# Global store instance
_store: Optional[RequestContextStore] = None
_store_lock = Lock()


def get_request_context_store() -> RequestContextStore:
    """Get or create the process-wide request context store."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = RequestContextStore()
                logger.debug("Request context store initialized")
    return _store
