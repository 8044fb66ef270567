"""Tests for BaseAPIClient implementation."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest


def _status_response(status_code: int, body: object = None) -> MagicMock:
    """Mock response whose raise_for_status() fails for non-2xx codes."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    if status_code >= 400:
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError(
                f"HTTP {status_code}", request=MagicMock(), response=response
            )
        )
    else:
        response.raise_for_status = MagicMock()
    return response


def _client_with(*responses: object, **kwargs: object):
    from rhinoguard.services.base import BaseAPIClient

    client = BaseAPIClient(base_url="http://backend.test", **kwargs)
    mock_httpx_client = AsyncMock()
    mock_httpx_client.request = AsyncMock(side_effect=list(responses))
    client._client = mock_httpx_client
    return client, mock_httpx_client


class TestBaseAPIClientInit:
    """Tests for BaseAPIClient initialization."""

    def test_defaults(self) -> None:
        """
        Given: BaseAPIClient class
        When: Created with only a base_url
        Then: Uses a 10s timeout, 2 attempts and JSON headers
        """
        from rhinoguard.services.base import BaseAPIClient

        client = BaseAPIClient(base_url="http://backend.test")

        assert client.base_url == "http://backend.test"
        assert client.timeout == 10.0
        assert client.max_retries == 2
        assert client.headers == {"Content-Type": "application/json"}

    def test_lazy_initialization(self) -> None:
        from rhinoguard.services.base import BaseAPIClient

        client = BaseAPIClient(base_url="http://backend.test")
        assert client._client is None

    @pytest.mark.asyncio
    async def test_get_client_creates_once(self) -> None:
        from rhinoguard.services.base import BaseAPIClient

        client = BaseAPIClient(base_url="http://backend.test", timeout=5.0)

        first = await client._get_client()
        second = await client._get_client()

        assert first is second
        assert isinstance(first, httpx.AsyncClient)
        await client.close()


class TestBaseAPIClientClose:
    """Tests for BaseAPIClient close method."""

    @pytest.mark.asyncio
    async def test_close_cleans_up_client(self) -> None:
        from rhinoguard.services.base import BaseAPIClient

        client = BaseAPIClient(base_url="http://backend.test")
        mock_httpx_client = AsyncMock()
        client._client = mock_httpx_client

        await client.close()

        mock_httpx_client.aclose.assert_called_once()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_does_nothing_if_no_client(self) -> None:
        from rhinoguard.services.base import BaseAPIClient

        client = BaseAPIClient(base_url="http://backend.test")

        await client.close()


class TestBaseAPIClientErrorClassification:
    """Tests for how failures map onto RhinoGuard exceptions."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self) -> None:
        client, mock_httpx_client = _client_with(_status_response(200, {"ok": True}))

        response = await client.post("/alerts/trigger", json={})

        assert response.status_code == 200
        mock_httpx_client.request.assert_awaited_once_with("POST", "/alerts/trigger", json={})

    @pytest.mark.asyncio
    async def test_404_is_unreachable_without_retry(self) -> None:
        """
        Given: A backend that does not implement the endpoint
        When: The request returns 404
        Then: BackendUnreachableError is raised at once and the breaker is untouched
        """
        from rhinoguard.core.exceptions import BackendUnreachableError

        client, mock_httpx_client = _client_with(_status_response(404))

        with pytest.raises(BackendUnreachableError) as exc_info:
            await client.get("/alerts")

        assert exc_info.value.status_code == 404
        assert mock_httpx_client.request.call_count == 1
        assert client._circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 409, 422])
    async def test_client_errors_are_validation_errors(self, status_code: int) -> None:
        """
        Given: BaseAPIClient
        When: The backend rejects the request with a 4xx
        Then: ValidationError carries the status code and body message, no retry
        """
        from rhinoguard.core.exceptions import ValidationError

        client, mock_httpx_client = _client_with(
            _status_response(status_code, {"message": "detection_id is required"})
        )

        with pytest.raises(ValidationError) as exc_info:
            await client.post("/alerts/trigger", json={})

        assert exc_info.value.status_code == status_code
        assert "detection_id is required" in str(exc_info.value)
        assert mock_httpx_client.request.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 502, 503])
    async def test_retry_then_success(self, status_code: int) -> None:
        client, mock_httpx_client = _client_with(
            _status_response(status_code), _status_response(200)
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            response = await client.get("/alerts")

        assert response.status_code == 200
        assert mock_httpx_client.request.call_count == 2
        mock_sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_max_retries_exceeded_raises_server_error(self) -> None:
        """
        Given: BaseAPIClient with 2 attempts
        When: Both attempts fail with 500
        Then: ServerError with "Max retries" and the last status code
        """
        from rhinoguard.core.exceptions import ServerError

        client, mock_httpx_client = _client_with(
            _status_response(500), _status_response(503)
        )

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ServerError) as exc_info:
                await client.get("/alerts")

        assert "Max retries" in str(exc_info.value)
        assert exc_info.value.status_code == 503
        assert mock_httpx_client.request.call_count == 2

    @pytest.mark.asyncio
    async def test_retry_on_timeout_then_success(self) -> None:
        client, mock_httpx_client = _client_with(
            httpx.TimeoutException("timeout"), _status_response(200)
        )

        with patch("asyncio.sleep", new_callable=AsyncMock):
            response = await client.get("/alerts")

        assert response.status_code == 200
        assert mock_httpx_client.request.call_count == 2

    @pytest.mark.asyncio
    async def test_no_response_is_unreachable(self) -> None:
        """
        Given: A backend host that refuses connections
        When: Every attempt fails at the transport level
        Then: BackendUnreachableError (not ServerError) is raised
        """
        from rhinoguard.core.exceptions import BackendUnreachableError, ServerError

        client, _ = _client_with(
            httpx.ConnectError("connection refused"),
            httpx.ConnectError("connection refused"),
        )

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(BackendUnreachableError) as exc_info:
                await client.get("/alerts")

        assert not isinstance(exc_info.value, ServerError)
        assert "No response after 2 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_per_call_attempts_override(self) -> None:
        """
        Given: BaseAPIClient with 2 attempts
        When: A POST is sent with max_retries=1 and times out
        Then: It gives up after one request without backing off
        """
        from rhinoguard.core.exceptions import BackendUnreachableError

        client, mock_httpx_client = _client_with(
            httpx.ReadTimeout("timeout"), _status_response(200)
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(BackendUnreachableError) as exc_info:
                await client.post("/alerts/trigger", json={}, max_retries=1)

        assert "No response after 1 attempts" in str(exc_info.value)
        assert mock_httpx_client.request.call_count == 1
        assert "max_retries" not in mock_httpx_client.request.call_args.kwargs
        mock_sleep.assert_not_called()
        assert client.max_retries == 2

    @pytest.mark.asyncio
    async def test_open_circuit_blocks_requests(self) -> None:
        """
        Given: Circuit threshold of 2 and two failed attempts
        When: Another request is made
        Then: CircuitBreakerOpenError is raised without calling the backend
        """
        from rhinoguard.core.exceptions import CircuitBreakerOpenError, ServerError

        client, mock_httpx_client = _client_with(
            _status_response(500),
            _status_response(500),
            circuit_breaker_threshold=2,
        )

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ServerError):
                await client.get("/alerts")
            with pytest.raises(CircuitBreakerOpenError):
                await client.get("/alerts")

        assert mock_httpx_client.request.call_count == 2


class TestParseJson:
    """Tests for BaseAPIClient.parse_json()."""

    def test_malformed_body_is_validation_error(self) -> None:
        from rhinoguard.core.exceptions import ValidationError
        from rhinoguard.services.base import BaseAPIClient

        response = httpx.Response(
            200,
            content=b"<html>oops</html>",
            request=httpx.Request("GET", "http://backend.test/alerts"),
        )

        with pytest.raises(ValidationError) as exc_info:
            BaseAPIClient.parse_json(response)

        assert exc_info.value.status_code == 200
