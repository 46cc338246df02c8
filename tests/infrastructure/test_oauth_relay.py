"""Tests for the OAuth relay (auth_relay.infrastructure.oauth_relay)."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from auth_relay.core.errors import DownstreamUnavailable, InvalidRequest
from auth_relay.infrastructure.oauth_relay import OAuthRelay

AUTH_BASE = "http://downstream.test"

AUTHORIZE_PARAMS = {
    "client_id": "id",
    "redirect_uri": "https://client.example/callback",
    "state": "xyz",
}

TOKEN_REQUEST = {
    "grant_type": "authorization_code",
    "code": "abc",
    "redirect_uri": "https://x",
    "client_id": "id",
    "client_secret": "sec",
}


def _query(url):
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


# =============================================================================
# Authorize
# =============================================================================


class TestBuildAuthorizeUrl:
    def test_defaults_response_type_to_code(self):
        url = OAuthRelay(AUTH_BASE).build_authorize_url(AUTHORIZE_PARAMS)

        assert url.startswith("http://downstream.test/oauth/authorize?")
        assert _query(url) == {**AUTHORIZE_PARAMS, "response_type": "code"}

    def test_keeps_explicit_response_type(self):
        url = OAuthRelay(AUTH_BASE).build_authorize_url(
            {**AUTHORIZE_PARAMS, "response_type": "token"}
        )
        assert _query(url)["response_type"] == "token"

    def test_passes_pkce_and_scope_through(self):
        url = OAuthRelay(AUTH_BASE).build_authorize_url({
            **AUTHORIZE_PARAMS,
            "scope": "read write",
            "code_challenge": "chal",
            "code_challenge_method": "S256",
        })
        query = _query(url)
        assert query["scope"] == "read write"
        assert query["code_challenge"] == "chal"
        assert query["code_challenge_method"] == "S256"

    def test_drops_unknown_parameters(self):
        url = OAuthRelay(AUTH_BASE).build_authorize_url({**AUTHORIZE_PARAMS, "evil": "1"})
        assert "evil" not in _query(url)

    @pytest.mark.parametrize("missing", ["client_id", "redirect_uri", "state"])
    def test_missing_required_parameter(self, missing):
        params = {k: v for k, v in AUTHORIZE_PARAMS.items() if k != missing}

        with pytest.raises(InvalidRequest) as exc_info:
            OAuthRelay(AUTH_BASE).build_authorize_url(params)

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_dict()["error"] == "invalid_request"


# =============================================================================
# Token
# =============================================================================


class TestExchangeToken:
    @pytest.mark.asyncio
    async def test_forwards_form_encoded_body(self, make_downstream):
        async def token_endpoint(request):
            return httpx.Response(
                200,
                content=b'{"access_token":"at","token_type":"Bearer","expires_in":7200}',
                headers={"content-type": "application/json"},
            )

        downstream = make_downstream(token_endpoint)
        relay = OAuthRelay(AUTH_BASE, transport=downstream.transport)

        result = await relay.exchange_token(TOKEN_REQUEST)

        sent = downstream.requests[0]
        assert sent.method == "POST"
        assert sent.url == "http://downstream.test/oauth/token"
        assert sent.headers["content-type"] == "application/x-www-form-urlencoded"
        assert {k: v[0] for k, v in parse_qs(sent.content.decode()).items()} == TOKEN_REQUEST
        assert sent.headers["accept"] == "application/json"

        assert result.status_code == 200
        assert result.content == b'{"access_token":"at","token_type":"Bearer","expires_in":7200}'
        assert result.media_type == "application/json"
        await relay.aclose()

    @pytest.mark.asyncio
    async def test_downstream_error_returned_verbatim(self, make_downstream):
        async def token_endpoint(request):
            return httpx.Response(
                400,
                content=b'{"error":"invalid_grant"}',
                headers={"content-type": "application/json"},
            )

        relay = OAuthRelay(AUTH_BASE, transport=make_downstream(token_endpoint).transport)

        result = await relay.exchange_token(TOKEN_REQUEST)

        assert result.status_code == 400
        assert result.content == b'{"error":"invalid_grant"}'

    @pytest.mark.asyncio
    async def test_client_credentials_grant_needs_no_code(self, make_downstream):
        downstream = make_downstream()
        relay = OAuthRelay(AUTH_BASE, transport=downstream.transport)

        await relay.exchange_token(
            {"grant_type": "client_credentials", "client_id": "id", "client_secret": "sec"}
        )

        form = parse_qs(downstream.requests[0].content.decode())
        assert form == {
            "grant_type": ["client_credentials"],
            "client_id": ["id"],
            "client_secret": ["sec"],
        }

    @pytest.mark.asyncio
    async def test_refresh_token_is_forwarded(self, make_downstream):
        downstream = make_downstream()
        relay = OAuthRelay(AUTH_BASE, transport=downstream.transport)

        await relay.exchange_token({
            "grant_type": "refresh_token",
            "refresh_token": "rt",
            "client_id": "id",
            "client_secret": "sec",
        })

        assert parse_qs(downstream.requests[0].content.decode())["refresh_token"] == ["rt"]

    @pytest.mark.asyncio
    async def test_reserved_characters_form_encoded(self, make_downstream):
        downstream = make_downstream()
        relay = OAuthRelay(AUTH_BASE, transport=downstream.transport)

        await relay.exchange_token({
            "grant_type": "authorization_code",
            "code": "a+b&c=d e",
            "redirect_uri": "https://client.example/cb?x=1",
            "client_id": "id",
            "client_secret": "s/e+c=",
        })

        sent = parse_qs(downstream.requests[0].content.decode())
        assert sent["code"] == ["a+b&c=d e"]
        assert sent["redirect_uri"] == ["https://client.example/cb?x=1"]
        assert sent["client_secret"] == ["s/e+c="]
        await relay.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["client_id", "client_secret", "code"])
    async def test_missing_fields_rejected_without_calling_downstream(
        self, make_downstream, missing
    ):
        downstream = make_downstream()
        relay = OAuthRelay(AUTH_BASE, transport=downstream.transport)
        form = {k: v for k, v in TOKEN_REQUEST.items() if k != missing}

        with pytest.raises(InvalidRequest):
            await relay.exchange_token(form)

        assert downstream.requests == []

    @pytest.mark.asyncio
    async def test_unreachable_authorization_server(self, make_downstream):
        async def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        relay = OAuthRelay(AUTH_BASE, transport=make_downstream(refuse).transport)

        with pytest.raises(DownstreamUnavailable):
            await relay.exchange_token(TOKEN_REQUEST)
