"""Unit tests for modkeeper.utils.http module.

This test suite covers the asynchronous HTTP client used to talk to the
Puppet Forge: construction defaults, retry and backoff, rate limiting,
status-code mapping to modkeeper exceptions and JSON decoding.

Test Coverage:
- HTTPClient initialization and defaults
- Context manager lifecycle
- _request retry logic (timeouts, network errors, 5xx)
- 404 -> ForgeError, other 4xx -> NetworkError
- 429 handling with Retry-After (integer, float, missing, invalid)
- get_json decoding and validation
"""

from __future__ import annotations

from typing import Any, Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from modkeeper.constants import DEFAULT_CONCURRENT_LIMIT
from modkeeper.exceptions import ForgeError, NetworkError
from modkeeper.utils.http import HTTPClient


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def http_client() -> HTTPClient:
    """Create an HTTPClient with short timeouts for testing."""
    return HTTPClient(timeout=5, max_retries=2)


@pytest.fixture
def no_sleep() -> Iterator[AsyncMock]:
    """Patch asyncio.sleep inside the http module so retries are instant."""
    with patch("modkeeper.utils.http.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


def _response(status_code: int, **attrs: Any) -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.headers = attrs.pop("headers", {})
    response.text = attrs.pop("text", "")
    if status_code >= 400 and status_code not in (404, 429):
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}",
            request=MagicMock(),
            response=response,
        )
    for key, value in attrs.items():
        setattr(response, key, value)
    return response


# ============================================================================
# Test: initialization
# ============================================================================


@pytest.mark.unit
class TestHTTPClientInit:
    """Tests for HTTPClient construction."""

    def test_default_values(self) -> None:
        """Test default configuration values.

        Happy path: Defaults come from modkeeper.constants.
        """
        client = HTTPClient()

        assert client.timeout == 30
        assert client.max_retries == 3
        assert client.rate_limit_delay == 0.0
        assert client.verify_ssl is True
        assert client.max_concurrency == DEFAULT_CONCURRENT_LIMIT
        assert client._max_429_retries == 5
        assert client._client is None

    def test_default_user_agent(self) -> None:
        """Test the User-Agent names the tool and its version."""
        assert HTTPClient().user_agent.startswith("modkeeper/")

    def test_custom_values(self) -> None:
        """Test keyword arguments override the defaults."""
        client = HTTPClient(
            timeout=5,
            max_retries=0,
            rate_limit_delay=0.5,
            verify_ssl=False,
            user_agent="custom/1.0",
            max_concurrency=2,
        )

        assert client.timeout == 5
        assert client.max_retries == 0
        assert client.rate_limit_delay == 0.5
        assert client.verify_ssl is False
        assert client.user_agent == "custom/1.0"
        assert client.max_concurrency == 2


# ============================================================================
# Test: lifecycle
# ============================================================================


@pytest.mark.unit
class TestHTTPClientLifecycle:
    """Tests for the async context manager."""

    @pytest.mark.asyncio
    async def test_context_manager_creates_and_closes(self) -> None:
        """Test the underlying client exists only inside the block."""
        client = HTTPClient()

        async with client as entered:
            assert entered is client
            assert isinstance(client._client, httpx.AsyncClient)
            assert client._client.headers["Accept"] == "application/json"
            assert client._client.headers["User-Agent"] == client.user_agent

        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        """Test closing twice is harmless.

        Edge case.
        """
        client = HTTPClient()
        await client.close()
        await client.close()
        assert client._client is None


# ============================================================================
# Test: _request
# ============================================================================


@pytest.mark.unit
class TestHTTPClientRequest:
    """Tests for HTTPClient._request retry logic."""

    @pytest.mark.asyncio
    async def test_successful_request(self, http_client: HTTPClient) -> None:
        """Test 200 returns immediately.

        Happy path.
        """
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.return_value = _response(200)

            async with http_client:
                response = await http_client.get("https://forge.test/v3/releases")

            assert response.status_code == 200
            assert mock_request.call_count == 1
            assert mock_request.call_args[0] == ("GET", "https://forge.test/v3/releases")

    @pytest.mark.asyncio
    async def test_strips_quotes_and_whitespace(self, http_client: HTTPClient) -> None:
        """Test URL cleaning.

        Edge case: Forge URLs from config files may carry quotes.
        """
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.return_value = _response(200)

            async with http_client:
                await http_client.get(' "https://forge.test" ')
                await http_client.get("'https://forge.test'")

            assert all(
                call[0][1] == "https://forge.test"
                for call in mock_request.call_args_list
            )

    @pytest.mark.asyncio
    async def test_passes_params(self, http_client: HTTPClient) -> None:
        """Test keyword arguments reach httpx."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.return_value = _response(200)

            async with http_client:
                await http_client.get("https://forge.test", params={"module": "a-b"})

            assert mock_request.call_args[1] == {"params": {"module": "a-b"}}

    @pytest.mark.asyncio
    async def test_404_raises_forge_error(self, http_client: HTTPClient) -> None:
        """Test 404 raises ForgeError without retrying."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.return_value = _response(404)

            async with http_client:
                with pytest.raises(ForgeError) as exc_info:
                    await http_client.get("https://forge.test/missing")

            assert exc_info.value.status_code == 404
            assert "not found" in str(exc_info.value).lower()
            assert mock_request.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 403, 422])
    async def test_4xx_raises_network_error(
        self,
        http_client: HTTPClient,
        status_code: int,
    ) -> None:
        """Test other client errors raise NetworkError immediately."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.return_value = _response(status_code, text="bad request")

            async with http_client:
                with pytest.raises(NetworkError) as exc_info:
                    await http_client.get("https://forge.test")

            assert not isinstance(exc_info.value, ForgeError)
            assert exc_info.value.status_code == status_code
            assert exc_info.value.response_body == "bad request"
            assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_5xx_retries(self, http_client: HTTPClient, no_sleep: AsyncMock) -> None:
        """Test server errors are retried with backoff."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.side_effect = [_response(503), _response(200)]

            async with http_client:
                response = await http_client.get("https://forge.test")

            assert response.status_code == 200
            assert mock_request.call_count == 2
            assert no_sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_retries(self, http_client: HTTPClient, no_sleep: AsyncMock) -> None:
        """Test timeouts are retried."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.side_effect = [httpx.TimeoutException("slow"), _response(200)]

            async with http_client:
                response = await http_client.get("https://forge.test")

            assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_network_error_retries(
        self,
        http_client: HTTPClient,
        no_sleep: AsyncMock,
    ) -> None:
        """Test connection failures are retried."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.side_effect = [httpx.ConnectError("refused"), _response(200)]

            async with http_client:
                response = await http_client.get("https://forge.test")

            assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, http_client: HTTPClient, no_sleep: AsyncMock) -> None:
        """Test NetworkError after every attempt fails.

        Edge case: max_retries=2 means three attempts and two sleeps.
        """
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.side_effect = httpx.TimeoutException("slow")

            async with http_client:
                with pytest.raises(NetworkError) as exc_info:
                    await http_client.get("https://forge.test")

            assert "after 3 attempts" in str(exc_info.value)
            assert isinstance(exc_info.value.__cause__, httpx.TimeoutException)
            assert mock_request.call_count == 3
            assert no_sleep.await_count == 2


# ============================================================================
# Test: 429 handling
# ============================================================================


@pytest.mark.unit
class TestRateLimitResponses:
    """Tests for 429 Too Many Requests handling."""

    @pytest.mark.asyncio
    async def test_429_honours_retry_after(
        self,
        http_client: HTTPClient,
        no_sleep: AsyncMock,
    ) -> None:
        """Test the Retry-After value is slept before retrying.

        Happy path.
        """
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.side_effect = [
                _response(429, headers={"Retry-After": "7"}),
                _response(200),
            ]

            async with http_client:
                response = await http_client.get("https://forge.test")

            assert response.status_code == 200
            no_sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    async def test_429_counts_as_an_attempt(
        self,
        no_sleep: AsyncMock,
    ) -> None:
        """Test a 429 still spends one loop iteration.

        Edge case: With max_retries=0 the retry never happens.
        """
        client = HTTPClient(max_retries=0)

        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.side_effect = [_response(429, headers={"Retry-After": "0"}), _response(200)]

            async with client:
                with pytest.raises(NetworkError):
                    await client.get("https://forge.test")

            # The 429 consumed the single loop iteration
            assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_429_exhausted(self, no_sleep: AsyncMock) -> None:
        """Test NetworkError once the 429 budget is spent."""
        client = HTTPClient(max_retries=10)
        client._max_429_retries = 2

        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request:
            mock_request.return_value = _response(429, headers={"Retry-After": "0"})

            async with client:
                with pytest.raises(NetworkError) as exc_info:
                    await client.get("https://forge.test")

            assert exc_info.value.status_code == 429
            assert "Rate limit exceeded" in str(exc_info.value)
            assert mock_request.call_count == 3

    @pytest.mark.parametrize(
        "headers,expected",
        [
            ({"Retry-After": "3"}, 3.0),
            ({"Retry-After": "1.5"}, 1.5),
            ({}, 1.0),
            ({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}, 1.0),
            ({"Retry-After": "-4"}, 0.0),
        ],
    )
    def test_retry_after_seconds(self, headers: dict, expected: float) -> None:
        """Test Retry-After parsing.

        Edge case: Missing or HTTP-date values fall back to one second.
        """
        response = _response(429, headers=headers)
        assert HTTPClient._retry_after_seconds(response) == expected


# ============================================================================
# Test: rate limiting between requests
# ============================================================================


@pytest.mark.unit
class TestRateLimitDelay:
    """Tests for the minimum delay between requests."""

    @pytest.mark.asyncio
    async def test_no_delay_by_default(self, no_sleep: AsyncMock) -> None:
        """Test rate limiting is off with rate_limit_delay=0."""
        client = HTTPClient()
        await client._rate_limit()
        await client._rate_limit()
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_request_waits(self, no_sleep: AsyncMock) -> None:
        """Test back-to-back requests are spaced out."""
        client = HTTPClient(rate_limit_delay=10.0)
        await client._rate_limit()
        await client._rate_limit()

        assert no_sleep.await_count == 1
        assert 0 < no_sleep.await_args[0][0] <= 10.0


# ============================================================================
# Test: get_json
# ============================================================================


@pytest.mark.unit
class TestGetJson:
    """Tests for HTTPClient.get_json."""

    @pytest.mark.asyncio
    async def test_returns_object(self, http_client: HTTPClient) -> None:
        """Test a JSON object body is returned as a dict.

        Happy path.
        """
        payload = {"pagination": {"next": None}, "results": []}
        with patch.object(http_client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _response(200, json=MagicMock(return_value=payload))

            data = await http_client.get_json("https://forge.test", params={"limit": 1})

        assert data == payload
        mock_get.assert_awaited_once_with("https://forge.test", params={"limit": 1})

    @pytest.mark.asyncio
    async def test_invalid_json(self, http_client: HTTPClient) -> None:
        """Test a non-JSON body raises NetworkError."""
        response = _response(200, text="<html>")
        response.json.side_effect = ValueError("not json")

        with patch.object(http_client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = response

            with pytest.raises(NetworkError) as exc_info:
                await http_client.get_json("https://forge.test")

        assert "Invalid JSON" in str(exc_info.value)
        assert exc_info.value.response_body == "<html>"

    @pytest.mark.asyncio
    async def test_non_object_json(self, http_client: HTTPClient) -> None:
        """Test a JSON array raises NetworkError.

        Edge case: The Forge always answers with an object.
        """
        with patch.object(http_client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _response(200, json=MagicMock(return_value=[1, 2]))

            with pytest.raises(NetworkError) as exc_info:
                await http_client.get_json("https://forge.test")

        assert "Expected JSON object" in str(exc_info.value)
