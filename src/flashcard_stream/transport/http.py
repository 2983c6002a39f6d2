"""
HTTP transport using httpx for async requests.

Provides:
- Streaming POST with a format-specific Accept header
- Plain JSON POST for the non-streaming fallback
- Configurable timeouts and proxy
- Mapping of httpx failures onto the package's error hierarchy
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

import httpx

from flashcard_stream._features import HAS_HTTP2
from flashcard_stream.errors import (
    MalformedFrameError,
    NetworkError,
    StreamTimeoutError,
    UpstreamError,
)
from flashcard_stream.telemetry import get_logger
from flashcard_stream.transport.auth import get_auth_header

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_CONNECT_TIMEOUT = 10.0

_UA_VERSION: str | None = None


def _trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("FLASHCARD_HTTP_TRUST_ENV", "0") == "1"


def _get_ua_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            _UA_VERSION = version("flashcard-stream")
        except PackageNotFoundError:
            _UA_VERSION = "0.1.0"
    return _UA_VERSION


def _parse_error_body(raw: bytes) -> dict[str, Any] | None:
    try:
        body = json.loads(raw)
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class HttpTransport:
    """HTTP transport for the generation endpoint.

    Uses httpx for async HTTP requests with streaming support. The endpoint
    URL is the full URL of the generation function.

    Example:
        >>> transport = HttpTransport("https://xyz.supabase.co/functions/v1/generate-flashcards")
        >>> async with transport.stream_post(payload, token=token) as response:
        ...     async for chunk in response.aiter_bytes():
        ...         process(chunk)
    """

    def __init__(
        self,
        endpoint_url: str,
        *,
        timeout: float | None = None,
        connect_timeout: float | None = None,
        proxy: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            endpoint_url: Generation endpoint URL
            timeout: Request timeout in seconds
            connect_timeout: Connect timeout in seconds
            proxy: Proxy URL
            client: Pre-built httpx client (not closed by this transport)
        """
        self._endpoint_url = endpoint_url
        self._timeout = timeout or _DEFAULT_TIMEOUT
        self._connect_timeout = connect_timeout or _DEFAULT_CONNECT_TIMEOUT
        self._proxy = proxy
        self._client = client
        self._owns_client = client is None

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
                proxy=self._proxy,
                http2=HAS_HTTP2,
                trust_env=_trust_env_enabled(),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_headers(self, token: str | None, accept: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": accept,
            "User-Agent": f"flashcard-stream/{_get_ua_version()}",
        }
        headers.update(get_auth_header(token))
        return headers

    def _network_error(self, e: httpx.HTTPError) -> NetworkError | StreamTimeoutError:
        if isinstance(e, httpx.ReadTimeout):
            return StreamTimeoutError(f"Request timed out: {e}", timeout=self._timeout)
        if isinstance(e, httpx.ConnectError):
            return NetworkError(f"Connection failed: {e}", url=self._endpoint_url, cause=e)
        if isinstance(e, httpx.TimeoutException):
            return NetworkError(f"Request timed out: {e}", url=self._endpoint_url, cause=e)
        return NetworkError(f"HTTP error: {e}", url=self._endpoint_url, cause=e)

    async def post_json(
        self,
        payload: dict[str, Any],
        *,
        token: str | None = None,
    ) -> dict[str, Any]:
        """POST a JSON body and return the parsed JSON response.

        Args:
            payload: JSON body
            token: Access token

        Returns:
            Parsed response object

        Raises:
            NetworkError: On network/connection errors
            StreamTimeoutError: If the response did not arrive in time
            UpstreamError: On non-success responses
            MalformedFrameError: If the body is not a JSON object
        """
        client = self._get_client()
        try:
            response = await client.post(
                self._endpoint_url,
                json=payload,
                headers=self._build_headers(token, "application/json"),
            )
        except httpx.HTTPError as e:
            raise self._network_error(e) from e

        if not response.is_success:
            raise UpstreamError.from_response(
                response.status_code, _parse_error_body(response.content)
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedFrameError("Response body is not valid JSON", decoder="json") from e
        if not isinstance(body, dict):
            raise MalformedFrameError("Response body is not a JSON object", decoder="json")
        return body

    @asynccontextmanager
    async def stream_post(
        self,
        payload: dict[str, Any],
        *,
        token: str | None = None,
        accept: str = "text/event-stream",
    ) -> AsyncIterator[httpx.Response]:
        """Make a streaming POST request.

        The response is released when the context exits, including on
        cancellation.

        Args:
            payload: JSON body
            token: Access token
            accept: Accept header for the selected wire format

        Yields:
            HTTP response whose body has not been read yet

        Raises:
            NetworkError: On network/connection errors
            StreamTimeoutError: If the response headers did not arrive in time
            UpstreamError: On non-success responses
        """
        client = self._get_client()
        request = client.build_request(
            "POST",
            self._endpoint_url,
            json=payload,
            headers=self._build_headers(token, accept),
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise self._network_error(e) from e

        try:
            if not response.is_success:
                try:
                    raw = await response.aread()
                except httpx.HTTPError as e:
                    raise self._network_error(e) from e
                raise UpstreamError.from_response(response.status_code, _parse_error_body(raw))
            logger.debug(
                "Stream opened",
                status=response.status_code,
                content_type=response.headers.get("content-type"),
            )
            yield response
        finally:
            await response.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
