"""API layer - Middleware and routing"""

from .middleware import RequestContextMiddleware
from .routes import router

__all__ = ["RequestContextMiddleware", "router"]
