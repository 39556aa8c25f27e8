"""
ProviderHttpClient - async HTTP client shared by the vendor adapters.

Maps transport failures and HTTP status codes onto the provider error
taxonomy so adapters only deal with parsed JSON:
- 429 → RateLimitError (with the vendor's Retry-After, if any)
- 401/403, 5xx and any other non-2xx → ProviderError(PROVIDER_FAILED)
- Timeouts → RequestTimeoutError
- Other transport errors → ProviderError(PROVIDER_FAILED)
- Non-JSON bodies → InvalidResponseError
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from email.utils import parsedate_to_datetime
from typing import Any, NoReturn

import httpx
from loguru import logger

from marketfeed.services.errors import (
    InvalidResponseError,
    ProviderError,
    ProviderErrorCode,
    RateLimitError,
    RequestTimeoutError,
)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header (delta-seconds or HTTP date) into seconds."""
    if not value:
        return None

    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


class ProviderHttpClient:
    """
    HTTP client for one provider.

    Usage:
        http = ProviderHttpClient("gemini-api", timeout=10.0)
        data = await http.request_json("POST", url, json_data={"symbols": [...]})

    Tests inject an httpx.AsyncClient built on httpx.MockTransport.
    """

    def __init__(
        self,
        provider: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.provider = provider
        self._timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_data: Any = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Make an HTTP request and classify failures.

        Returns:
            The successful (2xx) response

        Raises:
            RateLimitError: HTTP 429
            RequestTimeoutError: The request timed out
            ProviderError: Any other HTTP or transport failure
        """
        client = await self._get_http_client()
        req_timeout = timeout or self._timeout

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                headers=headers,
                json=json_data,
                timeout=req_timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self.provider, req_timeout) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"Network error: {e}",
                code=ProviderErrorCode.PROVIDER_FAILED,
                provider=self.provider,
            ) from e

        if not response.is_success:
            self._raise_for_status(response)
        return response

    async def request_json(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_data: Any = None,
        timeout: float | None = None,
    ) -> Any:
        """Make a request and decode the JSON body, numbers as Decimal."""
        response = await self.request(
            method,
            url,
            params=params,
            headers=headers,
            json_data=json_data,
            timeout=timeout,
        )
        try:
            return response.json(parse_float=Decimal)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidResponseError(
                f"Response is not valid JSON: {e}",
                provider=self.provider,
                details={"body": response.text[:200]},
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> NoReturn:
        status = response.status_code
        body = response.text[:200]
        details = {"status": status, "body": body}

        if status == 429:
            raise RateLimitError(
                self.provider,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                details=details,
            )

        if status in (401, 403):
            message = "Authentication failed - invalid or missing API key"
        elif status >= 500:
            message = f"Server error: HTTP {status}"
        else:
            message = f"HTTP error: {status}"

        logger.debug(f"[{self.provider}] {message}: {body}")
        raise ProviderError(
            message,
            code=ProviderErrorCode.PROVIDER_FAILED,
            provider=self.provider,
            details=details,
        )

    async def close(self) -> None:
        """Close the HTTP client if we created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ProviderHttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
