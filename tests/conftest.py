"""Shared fixtures for auth-relay tests"""

import httpx
import pytest

from auth_relay.config import Settings
from auth_relay.core.request_context import RequestContextStore

DOWNSTREAM_BASE_URL = "http://downstream.test"
PUBLIC_URL = "https://relay.test"


@pytest.fixture
def store():
    return RequestContextStore()


@pytest.fixture
def settings():
    return Settings(
        downstream_base_url=DOWNSTREAM_BASE_URL,
        public_url=PUBLIC_URL,
        auth_mode="bearer",
    )


class RecordingDownstream:
    """httpx mock transport handler that records every request it receives."""

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []
        self._handler = handler

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._handler is None:
            return httpx.Response(200, json={"ok": True})
        return await self._handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def downstream():
    return RecordingDownstream()


@pytest.fixture
def make_downstream():
    """Factory for downstream doubles with a custom async handler."""
    return RecordingDownstream
