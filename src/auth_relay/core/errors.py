"""Relay error taxonomy.

Every failure raised by the core and infrastructure layers derives from
RelayError. The application's exception handler turns these into HTTP
responses; nothing below the API layer builds responses itself.
"""

from typing import Dict, List, Optional, Tuple


class RelayError(Exception):
    """Base class for errors surfaced to the calling agent."""

    status_code: int = 500
    error: str = "server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        """OAuth-style error body"""
        return {
            "error": self.error,
            "error_description": self.message,
        }


class InvalidRequest(RelayError):
    """Malformed or incomplete OAuth relay input. Never retried."""

    status_code = 400
    error = "invalid_request"


class CredentialUnavailable(RelayError):
    """No credential could be resolved for an outbound call."""

    status_code = 401
    error = "invalid_token"


class DownstreamUnavailable(RelayError):
    """Transport-level failure reaching the downstream service."""

    status_code = 502
    error = "server_error"

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 504
            self.error = "temporarily_unavailable"


class DownstreamHTTPError(RelayError):
    """
    Downstream answered with an error status.

    The downstream body is kept as raw bytes, and the headers as a list of
    pairs, so both can be handed back to the caller verbatim.
    """

    error = "downstream_error"

    def __init__(
        self,
        status_code: int,
        content: bytes = b"",
        content_type: Optional[str] = None,
        headers: Optional[List[Tuple[str, str]]] = None,
    ):
        super().__init__(f"Downstream responded with HTTP {status_code}")
        self.status_code = status_code
        self.content = content
        self.content_type = content_type
        self.headers = list(headers or [])


class AuthenticationRejected(DownstreamHTTPError):
    """Downstream rejected the supplied credentials (401 or 403)."""

    error = "authentication_rejected"
