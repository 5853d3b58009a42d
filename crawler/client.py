"""
Stack Exchange API client with retry and exponential backoff.

Every call is retried on:
- Connection and timeout errors
- Non-success HTTP statuses
- Bodies that are not a JSON object
- Error objects embedded in an otherwise valid response

Delays grow as RETRY_BASE_DELAY * min(64, 2 ** attempt). Once all attempts
are spent the client raises RequestFailed with the last failure chained.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from core.config import Settings
from core.exceptions import PayloadError, RequestFailed, RetryableError, TransportError

logger = logging.getLogger(__name__)

MAX_BACKOFF_FACTOR = 64


class ApiClient:
    """
    Issue one Stack Exchange API request at a time.

    The site selector and API key are appended to every request. Responses
    are read inside a streaming context so the connection is released on
    every attempt, whether it succeeded, failed or raised.

    Attributes:
        max_attempts: Attempts per request before giving up (default: 10)
        base_delay: Backoff unit in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: 30.0)
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.SO_BASE_URL.rstrip("/")
        self.site = settings.SO_SITE
        self.api_key = settings.SO_API_KEY
        self.max_attempts = max(1, settings.MAX_RETRY_ATTEMPTS)
        self.base_delay = settings.RETRY_BASE_DELAY
        self.timeout = settings.REQUEST_TIMEOUT

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)
        self._client.headers["User-Agent"] = settings.USER_AGENT

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    def build_params(self, query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Caller query plus the fixed site selector and key"""
        params = dict(query or {})
        params["site"] = self.site
        if self.api_key:
            params["key"] = self.api_key
        return params

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after *attempt* (counted from 1)."""
        return self.base_delay * min(MAX_BACKOFF_FACTOR, 2 ** attempt)

    async def execute(self, endpoint: str, query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Call *endpoint* and return the parsed JSON payload.

        Args:
            endpoint: Path below the API base URL, e.g. "questions/1;2/answers"
            query: Query parameters for this call

        Returns:
            Parsed response object

        Raises:
            RequestFailed: After MAX_RETRY_ATTEMPTS failed attempts
        """
        url = self.build_url(endpoint)
        params = self.build_params(query)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.debug(f"Request attempt {attempt}/{self.max_attempts} to {url}")
                return await self._attempt(url, params, attempt)

            except (RetryableError, httpx.HTTPError) as e:
                last_error = e
                if attempt == self.max_attempts:
                    break

                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"Request to {url} failed (attempt {attempt}/{self.max_attempts}): {e}. "
                    f"Retrying in {delay} seconds"
                )
                await asyncio.sleep(delay)

        raise RequestFailed(
            f"Failed after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            context={"api_url": url, "params": self._redacted(params)},
            original_exception=last_error
        )

    async def _attempt(self, url: str, params: Dict[str, Any], attempt: int) -> Dict[str, Any]:
        async with self._client.stream("GET", url, params=params) as response:
            if not response.is_success:
                raise TransportError(
                    f"API request failed with code: {response.status_code}",
                    context={"api_url": url, "status_code": response.status_code, "attempt": attempt}
                )

            await response.aread()
            try:
                data = response.json()
            except ValueError as e:
                raise PayloadError(
                    "Failed to parse JSON response",
                    context={"api_url": url, "attempt": attempt},
                    original_exception=e
                )

        if not isinstance(data, dict):
            raise PayloadError(
                "Response is not a JSON object",
                context={"api_url": url, "attempt": attempt}
            )

        error = self._embedded_error(data)
        if error:
            raise PayloadError(
                f"API error: {error}",
                context={"api_url": url, "attempt": attempt}
            )

        if "quota_remaining" in data:
            logger.debug(f"API quota remaining: {data['quota_remaining']}")

        backoff = data.get("backoff")
        if backoff:
            # Throttling request from the API; honour it before the next call
            logger.warning(f"API requested backoff of {backoff} seconds")
            await asyncio.sleep(float(backoff))

        return data

    @staticmethod
    def _embedded_error(data: Dict[str, Any]) -> Optional[str]:
        error = data.get("error")
        if error:
            if isinstance(error, dict):
                return error.get("message") or str(error)
            return str(error)

        if "error_id" in data:
            return f"{data.get('error_name', 'error')} ({data['error_id']}): {data.get('error_message', '')}"

        return None

    @staticmethod
    def _redacted(params: Dict[str, Any]) -> Dict[str, Any]:
        return {k: ("***" if k == "key" else v) for k, v in params.items()}
