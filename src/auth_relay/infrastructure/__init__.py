"""Infrastructure layer - Downstream API client and OAuth relay"""

from .downstream_client import DownstreamClient
from .oauth_relay import OAuthRelay, TokenRelayResult

__all__ = [
    "DownstreamClient",
    "OAuthRelay",
    "TokenRelayResult",
]
