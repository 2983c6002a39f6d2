"""
Transport layer - HTTP client for the generation endpoint.

Provides httpx-based transport with:
- Async streaming support
- Proxy configuration
- Timeout management
- Access token resolution
"""

from flashcard_stream.transport.auth import (
    EnvTokenProvider,
    Identity,
    StaticTokenProvider,
    TokenProvider,
    get_auth_header,
    resolve_access_token,
)
from flashcard_stream.transport.http import HttpTransport

__all__ = [
    "EnvTokenProvider",
    "HttpTransport",
    "Identity",
    "StaticTokenProvider",
    "TokenProvider",
    "get_auth_header",
    "resolve_access_token",
]
