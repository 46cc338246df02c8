"""Authenticated HTTP client for the downstream API"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.auth_provider import IAuthProvider, is_auth_error
from ..core.errors import (
    AuthenticationRejected,
    DownstreamHTTPError,
    DownstreamUnavailable,
)

logger = logging.getLogger(__name__)


class DownstreamClient:
    """
    Wraps every outbound call to the downstream API.

    For each call:
    1. Resolve fresh auth headers from the configured provider
    2. Merge them over the caller's headers and issue the request
    3. On 401/403 ask the provider whether to retry (at most once)
    4. Raise on any remaining error status, return the response otherwise

    Example:
        client = DownstreamClient("http://api.example.com/api/v1", BearerTokenAuthProvider())
        response = await client.issue("GET", "/teams")
    """

    def __init__(
        self,
        base_url: str,
        auth_provider: IAuthProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize downstream client.

        Args:
            base_url: Downstream API base URL
            auth_provider: Provider consulted before every call
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.auth_provider = auth_provider
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

        logger.info(
            f"Initialized DownstreamClient for {self.base_url} "
            f"(auth provider: {auth_provider.get_provider_name()}, timeout: {timeout}s)"
        )

    async def issue(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
        params: Optional[Any] = None,
    ) -> httpx.Response:
        """
        Issue an authenticated call to the downstream API.

        Args:
            method: HTTP method
            path: Path relative to the downstream base URL
            headers: Caller-supplied headers; auth headers override them
            body: Raw request body
            params: Query parameters

        Returns:
            Successful downstream response

        Raises:
            CredentialUnavailable: If the provider has no credential (no call is made)
            AuthenticationRejected: If downstream answers 401/403 and no retry succeeds
            DownstreamHTTPError: For any other error status
            DownstreamUnavailable: On transport failure
        """
        response = await self._send(method, path, headers, body, params)

        if is_auth_error(response.status_code):
            error = _to_error(response, AuthenticationRejected)
            if not await self.auth_provider.handle_auth_error(error):
                logger.warning(
                    f"{method} {path} rejected by downstream with "
                    f"{response.status_code}, not retrying"
                )
                raise error

            logger.info(f"Retrying {method} {path} after auth provider refresh")
            response = await self._send(method, path, headers, body, params)
            if is_auth_error(response.status_code):
                raise _to_error(response, AuthenticationRejected)

        if response.status_code >= 400:
            raise _to_error(response, DownstreamHTTPError)

        return response

    async def aclose(self) -> None:
        """Close pooled connections"""
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]],
        body: Optional[bytes],
        params: Optional[Any],
    ) -> httpx.Response:
        # Resolved per attempt so a retry sees fresh credentials
        auth_headers = await self.auth_provider.get_auth_headers()
        request_headers = {**(headers or {}), **auth_headers}

        try:
            response = await self._client.request(
                method=method,
                url=path,
                headers=request_headers,
                content=body,
                params=params,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Downstream timeout for {method} {path}")
            raise DownstreamUnavailable(
                "Downstream service did not respond in time", timed_out=True
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Downstream request error for {method} {path}: {str(e)}")
            raise DownstreamUnavailable(
                f"Failed to connect to downstream service: {str(e)}"
            ) from e

        logger.info(f"Downstream {method} {path} -> {response.status_code}")
        return response


def _to_error(response: httpx.Response, error_cls):
    return error_cls(
        status_code=response.status_code,
        content=response.content,
        content_type=response.headers.get("content-type"),
        headers=response.headers.multi_items(),
    )
