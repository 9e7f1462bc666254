"""Shared httpx plumbing: lazy client, error mapping and the retry loop."""

import asyncio
import json
import logging
from typing import Any

import httpx

from ..models import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    TimeoutError,
)

logger = logging.getLogger(__name__)


class APIClientBase:
    """Base for the Oura and Roam clients.

    Subclasses set ``base_url``, ``headers``, ``timeout`` and
    ``max_retries``; ``transport`` is only passed by tests.
    """

    base_url: str
    timeout: float
    max_retries: int

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, base_delay: float = 1.0):
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.base_delay = base_delay

    @property
    def headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _handle_response(self, response: httpx.Response) -> Any:
        """Map HTTP status codes onto our error types and decode the body."""
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid token or unauthorized access")

        if response.status_code == 404:
            raise NotFoundError(response.request.url.path)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None)

        if response.status_code >= 500:
            raise NetworkError(f"Server error: {response.status_code}")

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get("message") or error_data.get("error") or "API request failed"
            except (json.JSONDecodeError, AttributeError):
                message = f"API error: {response.status_code}"
            raise NetworkError(f"{message} ({response.status_code})")

        if not response.content:
            return {}
        try:
            return response.json()
        except json.JSONDecodeError as err:
            raise NetworkError("Invalid response format from API") from err

    def _already_applied(self, error: NetworkError) -> bool:
        """Whether a retried request failed only because its first attempt landed."""
        return False

    async def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> Any:
        """Send one request with exponential backoff retry.

        Rate limits wait for ``Retry-After`` when the server gives one;
        network errors and timeouts back off exponentially. Authentication
        and not-found errors are raised straight away. A retry rejected
        because the earlier attempt already went through (see
        ``_already_applied``) counts as success.
        """
        retry_count = 0

        while retry_count < self.max_retries:
            try:
                response = await self.client.request(method, url, **kwargs)
                return await self._handle_response(response)

            except RateLimitError as e:
                retry_count += 1
                retry_after = e.retry_after or (self.base_delay * (2 ** retry_count))
                logger.warning(
                    f"Rate limited on {operation}. Retry after {retry_after}s. "
                    f"Attempt {retry_count}/{self.max_retries}"
                )
                if retry_count < self.max_retries:
                    await asyncio.sleep(retry_after)
                else:
                    raise

            except NetworkError as e:
                if retry_count and self._already_applied(e):
                    logger.info(f"{operation} was applied by an earlier attempt: {e}")
                    return {}
                retry_count += 1
                logger.warning(f"Network error on {operation}: {e}. Retry {retry_count}/{self.max_retries}")
                if retry_count < self.max_retries:
                    await asyncio.sleep(self.base_delay * (2 ** retry_count))
                else:
                    raise

            except httpx.TimeoutException as err:
                retry_count += 1
                logger.warning(f"Timeout on {operation}: {err}. Retry {retry_count}/{self.max_retries}")
                if retry_count < self.max_retries:
                    await asyncio.sleep(self.base_delay * (2 ** retry_count))
                else:
                    raise TimeoutError(operation) from err

            except httpx.TransportError as err:
                retry_count += 1
                logger.warning(f"Transport error on {operation}: {err}. Retry {retry_count}/{self.max_retries}")
                if retry_count < self.max_retries:
                    await asyncio.sleep(self.base_delay * (2 ** retry_count))
                else:
                    raise NetworkError(f"{operation} failed: {err}") from err

        raise NetworkError(f"{operation} failed after maximum retries")
