"""OAuth 2.0 relay to the downstream authorization server.

Both operations are stateless forwards. The downstream server stays the single
source of truth for token semantics, so token responses (including error
bodies) are passed back untouched.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from urllib.parse import urlencode

import httpx

from ..core.errors import DownstreamUnavailable, InvalidRequest

logger = logging.getLogger(__name__)

AUTHORIZE_REQUIRED = ("client_id", "redirect_uri", "state")
AUTHORIZE_OPTIONAL = ("scope", "code_challenge", "code_challenge_method", "resource")
TOKEN_FIELDS = ("grant_type", "code", "redirect_uri", "client_id", "client_secret")
TOKEN_OPTIONAL = ("refresh_token", "code_verifier", "scope")


@dataclass
class TokenRelayResult:
    """Downstream token endpoint response, returned verbatim"""

    status_code: int
    content: bytes
    media_type: Optional[str] = None


class OAuthRelay:
    """
    Forwards authorize and token requests to the downstream authorization server.

    Endpoints on the downstream server:
    - {base_url}/oauth/authorize
    - {base_url}/oauth/token
    """

    def __init__(
        self,
        authorization_base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = authorization_base_url.rstrip("/")
        self.authorize_url = f"{self.base_url}/oauth/authorize"
        self.token_url = f"{self.base_url}/oauth/token"
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

        logger.info(f"Initialized OAuthRelay for {self.base_url}")

    def build_authorize_url(self, params: Mapping[str, str]) -> str:
        """
        Build the downstream authorization URL for a caller's authorize request.

        Args:
            params: Inbound query parameters

        Returns:
            Absolute URL to redirect the caller to

        Raises:
            InvalidRequest: If client_id, redirect_uri or state is missing
        """
        if not all(params.get(name) for name in AUTHORIZE_REQUIRED):
            raise InvalidRequest(
                "Missing required parameters: client_id, redirect_uri, or state"
            )

        query = {name: params[name] for name in AUTHORIZE_REQUIRED}
        query["response_type"] = params.get("response_type") or "code"
        for name in AUTHORIZE_OPTIONAL:
            if params.get(name):
                query[name] = params[name]

        logger.info(
            f"OAuth authorize request for client_id={query['client_id']} "
            f"redirect_uri={query['redirect_uri']}"
        )
        return f"{self.authorize_url}?{urlencode(query)}"

    async def exchange_token(self, form: Mapping[str, str]) -> TokenRelayResult:
        """
        Forward a token request to the downstream token endpoint.

        Args:
            form: Inbound token request fields (from JSON or form body)

        Returns:
            Downstream status and body

        Raises:
            InvalidRequest: If client credentials or the authorization code are missing
            DownstreamUnavailable: If the downstream server cannot be reached
        """
        if not form.get("client_id") or not form.get("client_secret"):
            raise InvalidRequest("Missing client_id or client_secret")

        grant_type = form.get("grant_type")
        if grant_type == "authorization_code" and not form.get("code"):
            raise InvalidRequest("Missing authorization code")

        data: Dict[str, str] = {}
        for name in TOKEN_FIELDS + TOKEN_OPTIONAL:
            value = form.get(name)
            if value is not None and value != "":
                data[name] = str(value)

        logger.info(
            f"OAuth token request grant_type={grant_type} "
            f"client_id={data['client_id']}"
        )

        try:
            response = await self._client.post(
                self.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"Token endpoint timeout at {self.token_url}")
            raise DownstreamUnavailable(
                "Authorization server did not respond in time", timed_out=True
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Token exchange error: {str(e)}")
            raise DownstreamUnavailable(
                "Internal server error during token exchange"
            ) from e

        logger.info(f"Downstream token response -> {response.status_code}")

        return TokenRelayResult(
            status_code=response.status_code,
            content=response.content,
            media_type=response.headers.get("content-type"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
