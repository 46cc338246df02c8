"""Authentication provider interface for outbound downstream calls"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import AuthenticationRejected, CredentialUnavailable
from .request_context import RequestContextStore, get_request_context_store

logger = logging.getLogger(__name__)

AUTH_ERROR_STATUSES = (401, 403)


def is_auth_error(status_code: int) -> bool:
    """Check whether a downstream status code is authentication-related"""
    return status_code in AUTH_ERROR_STATUSES


class IAuthProvider(ABC):
    """
    Interface for outbound authentication providers.

    A provider is a strategy shared by the whole process. It is consulted
    before every downstream call, so implementations must not cache
    credentials between calls.
    """

    @abstractmethod
    async def get_auth_headers(self) -> Dict[str, str]:
        """
        Get authentication headers for the downstream call about to be issued.

        Returns:
            Fresh mapping of header name to value

        Raises:
            CredentialUnavailable: If no usable credential exists for this call
        """
        pass

    @abstractmethod
    async def handle_auth_error(self, error: AuthenticationRejected) -> bool:
        """
        React to a 401/403 from downstream.

        Args:
            error: The rejected call

        Returns:
            True if the call should be retried with freshly resolved headers
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the name of this authentication provider"""
        pass


class StaticAuthProvider(IAuthProvider):
    """Fixed headers set at construction. Cannot recover from auth failures."""

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self._headers = dict(headers or {})
        logger.info(
            f"Initialized StaticAuthProvider with headers: {sorted(self._headers)}"
        )

    async def get_auth_headers(self) -> Dict[str, str]:
        return dict(self._headers)

    async def handle_auth_error(self, error: AuthenticationRejected) -> bool:
        # No way to obtain different credentials
        return False

    def get_provider_name(self) -> str:
        return "static"


class BearerTokenAuthProvider(IAuthProvider):
    """
    Forwards the bearer token of the request currently being handled.

    The token is read from the request context store on every call. It is
    never refreshed here: the original client must obtain a new token and
    retry its whole request.
    """

    def __init__(self, store: Optional[RequestContextStore] = None):
        self.store = store or get_request_context_store()

    async def get_auth_headers(self) -> Dict[str, str]:
        context = self.store.current()
        token = context.bearer_token if context else None

        if not token:
            logger.warning("No bearer token in request context for downstream call")
            raise CredentialUnavailable(
                "No bearer token found in request context. Ensure the client "
                "sends Authorization: Bearer <token> header."
            )

        return {"Authorization": f"Bearer {token}"}

    async def handle_auth_error(self, error: AuthenticationRejected) -> bool:
        logger.info(
            f"Downstream rejected caller token with HTTP {error.status_code}; "
            "client must re-authenticate"
        )
        return False

    def get_provider_name(self) -> str:
        return "bearer"
