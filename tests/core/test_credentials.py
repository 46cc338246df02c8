"""Tests for bearer credential extraction (auth_relay.core.credentials)."""

import pytest

from auth_relay.core.credentials import context_from_headers, extract_bearer_token


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc123", "abc123"),
        ("bearer abc123", "abc123"),
        ("BEARER  abc123  ", "abc123"),
        ("Bearer eyJhbGciOi.payload.sig", "eyJhbGciOi.payload.sig"),
        (None, None),
        ("", None),
        ("Bearer", None),
        ("Bearer    ", None),
        ("Basic dXNlcjpwYXNz", None),
        ("Token abc", None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_malformed_token_is_kept_as_is():
    # Only the scheme prefix is stripped; token contents are not validated
    assert extract_bearer_token("Bearer not a jwt") == "not a jwt"


def test_context_from_headers():
    context = context_from_headers({"authorization": "Bearer tenant-token"})
    assert context.bearer_token == "tenant-token"


def test_context_from_headers_without_authorization():
    assert context_from_headers({}).bearer_token is None


def test_each_call_builds_fresh_context():
    headers = {"authorization": "Bearer same"}
    assert context_from_headers(headers) is not context_from_headers(headers)
