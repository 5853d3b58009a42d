"""
Unit tests for the Stack Exchange API client
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from core.exceptions import RequestFailed, TransportError, PayloadError
from crawler.client import ApiClient


def make_client(settings, responses):
    """Client whose transport replays *responses* (Responses or exceptions) in order"""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = responses[min(len(seen), len(responses)) - 1]
        if isinstance(response, BaseException):
            raise response
        # Fresh copy, a response object is consumed by one attempt
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApiClient(settings, http_client=http_client), seen


class TestRequestBuilding:
    """Test URL and parameter construction"""

    def test_site_and_key_added(self, test_settings):
        client = ApiClient(test_settings, http_client=httpx.AsyncClient())

        params = client.build_params({"page": 2})

        assert params == {"page": 2, "site": "stackoverflow", "key": "test_key"}

    def test_key_omitted_when_not_configured(self, test_settings):
        test_settings.SO_API_KEY = None
        client = ApiClient(test_settings, http_client=httpx.AsyncClient())

        assert "key" not in client.build_params()

    def test_url_joins_endpoint(self, test_settings):
        client = ApiClient(test_settings, http_client=httpx.AsyncClient())

        assert client.build_url("questions/1;2/answers") == test_settings.SO_BASE_URL + "/questions/1;2/answers"

    def test_backoff_delay_is_capped(self, test_settings):
        test_settings.RETRY_BASE_DELAY = 1.0
        client = ApiClient(test_settings, http_client=httpx.AsyncClient())

        assert client.backoff_delay(1) == 2.0
        assert client.backoff_delay(5) == 32.0
        assert client.backoff_delay(6) == 64.0
        assert client.backoff_delay(10) == 64.0


class TestExecute:
    """Test retry behaviour of execute()"""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, test_settings):
        client, seen = make_client(test_settings, [httpx.Response(200, json={"items": [], "has_more": False})])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            data = await client.execute("questions", {"page": 1})

        assert data == {"items": [], "has_more": False}
        assert len(seen) == 1
        assert seen[0].url.params["site"] == "stackoverflow"
        assert seen[0].url.params["page"] == "1"
        assert seen[0].headers["User-Agent"] == test_settings.USER_AGENT
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, test_settings):
        client, seen = make_client(test_settings, [
            httpx.Response(500),
            httpx.Response(503),
            httpx.Response(200, json={"total": 7}),
        ])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            data = await client.execute("questions", {"filter": "total"})

        assert data == {"total": 7}
        assert len(seen) == 3
        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert delays == [client.backoff_delay(1), client.backoff_delay(2)]

    @pytest.mark.asyncio
    async def test_connection_error_is_retried(self, test_settings):
        request = httpx.Request("GET", test_settings.SO_BASE_URL)
        client, seen = make_client(test_settings, [
            httpx.ConnectError("refused", request=request),
            httpx.Response(200, json={"items": []}),
        ])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock):
            data = await client.execute("questions")

        assert data == {"items": []}
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, test_settings):
        client, seen = make_client(test_settings, [httpx.Response(500)])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RequestFailed) as exc_info:
                await client.execute("questions")

        assert len(seen) == test_settings.MAX_RETRY_ATTEMPTS
        assert exc_info.value.attempts == test_settings.MAX_RETRY_ATTEMPTS
        assert isinstance(exc_info.value.__cause__, TransportError)

        # No sleep after the final attempt
        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert len(delays) == test_settings.MAX_RETRY_ATTEMPTS - 1
        assert delays == sorted(delays)
        assert all(d <= test_settings.RETRY_BASE_DELAY * 64 for d in delays)

    @pytest.mark.asyncio
    async def test_backoff_bounded_over_many_attempts(self, test_settings):
        test_settings.MAX_RETRY_ATTEMPTS = 10
        client, _ = make_client(test_settings, [httpx.Response(502)])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RequestFailed):
                await client.execute("questions")

        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert len(delays) == 9
        assert delays == sorted(delays)
        assert max(delays) == test_settings.RETRY_BASE_DELAY * 64

    @pytest.mark.asyncio
    async def test_api_key_redacted_in_failure_context(self, test_settings):
        client, _ = make_client(test_settings, [httpx.Response(500)])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RequestFailed) as exc_info:
                await client.execute("questions")

        assert exc_info.value.context["params"]["key"] == "***"

    @pytest.mark.asyncio
    async def test_embedded_error_is_retried(self, test_settings):
        client, seen = make_client(test_settings, [
            httpx.Response(200, json={
                "error_id": 502,
                "error_name": "throttle_violation",
                "error_message": "too many requests from this IP",
            }),
            httpx.Response(200, json={"items": [{"question_id": 1}]}),
        ])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock):
            data = await client.execute("questions")

        assert data["items"] == [{"question_id": 1}]
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_unparseable_body_is_retried(self, test_settings):
        client, seen = make_client(test_settings, [
            httpx.Response(200, content=b"<html>maintenance</html>"),
            httpx.Response(200, json=[1, 2, 3]),
            httpx.Response(200, json={"items": []}),
        ])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock):
            data = await client.execute("questions")

        assert data == {"items": []}
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_payload_failures_exhaust_attempts(self, test_settings):
        client, _ = make_client(test_settings, [httpx.Response(200, json={"error": "boom"})])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RequestFailed) as exc_info:
                await client.execute("questions")

        assert isinstance(exc_info.value.__cause__, PayloadError)

    @pytest.mark.asyncio
    async def test_backoff_field_is_honoured(self, test_settings):
        client, _ = make_client(test_settings, [httpx.Response(200, json={"items": [], "backoff": 5})])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.execute("questions")

        mock_sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self, test_settings):
        client, seen = make_client(test_settings, [asyncio.CancelledError()])

        with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(asyncio.CancelledError):
                await client.execute("questions")

        assert len(seen) == 1
        mock_sleep.assert_not_called()


class TestLifecycle:
    """Test client ownership"""

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, test_settings):
        http_client = httpx.AsyncClient()

        async with ApiClient(test_settings, http_client=http_client):
            pass

        assert not http_client.is_closed
        await http_client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, test_settings):
        client = ApiClient(test_settings)

        async with client:
            pass

        assert client._client.is_closed
