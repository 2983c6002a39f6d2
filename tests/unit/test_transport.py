"""Tests for the transport layer."""

from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest
from pytest_httpx import HTTPXMock, IteratorStream

from flashcard_stream.errors import (
    ErrorClass,
    MalformedFrameError,
    NetworkError,
    StreamTimeoutError,
    UpstreamError,
)
from flashcard_stream.transport import (
    EnvTokenProvider,
    HttpTransport,
    StaticTokenProvider,
    TokenProvider,
    get_auth_header,
    resolve_access_token,
)
from flashcard_stream.transport import auth as auth_module
from tests.support import ENDPOINT


class TestResolveAccessToken:
    """Tests for access token resolution."""

    def test_explicit_token_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test an explicit token takes precedence."""
        monkeypatch.setenv("FLASHCARD_ACCESS_TOKEN", "from-env")

        assert resolve_access_token("explicit") == "explicit"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the token is read from the environment."""
        monkeypatch.setenv("FLASHCARD_ACCESS_TOKEN", "from-env")

        assert resolve_access_token() == "from-env"

    def test_custom_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a custom environment variable."""
        monkeypatch.setenv("MY_APP_TOKEN", "custom")

        assert resolve_access_token(env_var="MY_APP_TOKEN") == "custom"

    def test_not_found(self) -> None:
        """Test None without any source."""
        assert resolve_access_token() is None

    def test_keyring_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the keyring is consulted when available."""
        monkeypatch.setattr(auth_module, "_try_keyring", lambda user: "from-keyring")

        assert resolve_access_token() == "from-keyring"
        assert resolve_access_token(use_keyring=False) is None

    def test_keyring_unavailable(self) -> None:
        """Test the keyring lookup is skipped without the keyring package."""
        assert auth_module._try_keyring("default") is None


class TestTokenProviders:
    """Tests for token providers."""

    @pytest.mark.asyncio
    async def test_static_provider(self) -> None:
        """Test a static provider returns its token."""
        assert await StaticTokenProvider("abc").get_token() == "abc"
        assert await StaticTokenProvider("").get_token() is None

    @pytest.mark.asyncio
    async def test_env_provider_reads_each_call(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the env provider picks up a refreshed token."""
        provider = EnvTokenProvider(use_keyring=False)
        assert await provider.get_token() is None

        monkeypatch.setenv("FLASHCARD_ACCESS_TOKEN", "refreshed")
        assert await provider.get_token() == "refreshed"

    def test_protocol(self) -> None:
        """Test the providers satisfy the TokenProvider protocol."""
        assert isinstance(StaticTokenProvider("abc"), TokenProvider)
        assert isinstance(EnvTokenProvider(), TokenProvider)
        assert not isinstance(SimpleNamespace(), TokenProvider)

    def test_auth_header(self) -> None:
        """Test the bearer header."""
        assert get_auth_header("abc") == {"Authorization": "Bearer abc"}
        assert get_auth_header(None) == {}


class TestPostJson:
    """Tests for HttpTransport.post_json."""

    @pytest.mark.asyncio
    async def test_success(self, httpx_mock: HTTPXMock) -> None:
        """Test a JSON body is posted and the response parsed."""
        httpx_mock.add_response(
            url=ENDPOINT, method="POST", json={"flashcards": [], "title": None}
        )

        async with HttpTransport(ENDPOINT) as transport:
            body = await transport.post_json({"prompt": "Cells", "count": 2}, token="abc")

        assert body == {"flashcards": [], "title": None}
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer abc"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"].startswith("flashcard-stream/")
        assert json.loads(request.content) == {"prompt": "Cells", "count": 2}

    @pytest.mark.asyncio
    async def test_error_status(self, httpx_mock: HTTPXMock) -> None:
        """Test a non-success status becomes an UpstreamError with the server message."""
        httpx_mock.add_response(
            url=ENDPOINT, status_code=429, json={"error": "Daily limit reached"}
        )

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(UpstreamError) as exc_info:
                await transport.post_json({}, token="abc")

        error = exc_info.value
        assert error.message == "Daily limit reached (HTTP 429)"
        assert error.status_code == 429
        assert error.error_class is ErrorClass.RATE_LIMITED
        assert error.retryable is True

    @pytest.mark.asyncio
    async def test_error_status_without_body(self, httpx_mock: HTTPXMock) -> None:
        """Test a generic message when the error body is not JSON."""
        httpx_mock.add_response(url=ENDPOINT, status_code=500, text="Internal Server Error")

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(UpstreamError) as exc_info:
                await transport.post_json({})

        assert exc_info.value.message == "Failed to generate flashcards (HTTP 500)"
        assert exc_info.value.error_class is ErrorClass.SERVER_ERROR

    @pytest.mark.asyncio
    async def test_invalid_json(self, httpx_mock: HTTPXMock) -> None:
        """Test a success response that is not JSON is malformed."""
        httpx_mock.add_response(url=ENDPOINT, text="<html>oops</html>")

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(MalformedFrameError):
                await transport.post_json({})

    @pytest.mark.asyncio
    async def test_non_object_json(self, httpx_mock: HTTPXMock) -> None:
        """Test a JSON array body is malformed."""
        httpx_mock.add_response(url=ENDPOINT, json=[1, 2])

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(MalformedFrameError):
                await transport.post_json({})

    @pytest.mark.asyncio
    async def test_connection_error(self, httpx_mock: HTTPXMock) -> None:
        """Test a refused connection becomes a NetworkError."""
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(NetworkError) as exc_info:
                await transport.post_json({})

        assert exc_info.value.url == ENDPOINT
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_read_timeout(self, httpx_mock: HTTPXMock) -> None:
        """Test a read timeout becomes a StreamTimeoutError."""
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

        async with HttpTransport(ENDPOINT, timeout=5.0) as transport:
            with pytest.raises(StreamTimeoutError) as exc_info:
                await transport.post_json({})

        assert exc_info.value.timeout == 5.0


class TestStreamPost:
    """Tests for HttpTransport.stream_post."""

    @pytest.mark.asyncio
    async def test_stream_body(self, httpx_mock: HTTPXMock) -> None:
        """Test the body is delivered in chunks with the requested accept type."""
        httpx_mock.add_response(
            url=ENDPOINT,
            method="POST",
            stream=IteratorStream([b"CARD_START\n", b"Q: a\nA: b\nCARD_END\n"]),
            headers={"Content-Type": "text/plain"},
        )

        async with HttpTransport(ENDPOINT) as transport:
            async with transport.stream_post(
                {"prompt": "Cells"}, token="abc", accept="text/plain"
            ) as response:
                chunks = [chunk async for chunk in response.aiter_bytes()]

        assert b"".join(chunks) == b"CARD_START\nQ: a\nA: b\nCARD_END\n"
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Accept"] == "text/plain"
        assert request.headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_stream_error_status(self, httpx_mock: HTTPXMock) -> None:
        """Test a non-success status is raised before any body is yielded."""
        httpx_mock.add_response(
            url=ENDPOINT, status_code=401, json={"error": {"message": "Invalid JWT"}}
        )

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(UpstreamError) as exc_info:
                async with transport.stream_post({}, token="expired"):
                    pytest.fail("body must not be yielded")

        assert exc_info.value.message == "Invalid JWT (HTTP 401)"
        assert exc_info.value.error_class is ErrorClass.AUTHENTICATION
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_stream_connection_error(self, httpx_mock: HTTPXMock) -> None:
        """Test a connection failure before headers becomes a NetworkError."""
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        async with HttpTransport(ENDPOINT) as transport:
            with pytest.raises(NetworkError):
                async with transport.stream_post({}):
                    pass

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, httpx_mock: HTTPXMock) -> None:
        """Test a caller-supplied client is left open."""
        httpx_mock.add_response(url=ENDPOINT, json={})
        client = httpx.AsyncClient()

        async with HttpTransport(ENDPOINT, client=client) as transport:
            await transport.post_json({})

        assert client.is_closed is False
        await client.aclose()
