"""
Base HTTP client for external data providers.

The base client provides:
- A lazily created httpx.AsyncClient with a hard timeout
- Retry with exponential backoff for connection-level failures
- Translation of every transport/HTTP failure into ProviderError
- Failure metrics per provider

HTTP error responses are not retried here; they propagate as ProviderError
and the job runner decides whether the whole job is worth another attempt.

Usage:
    class ExampleClient(BaseProviderClient):
        provider = "example"

    async with ExampleClient(base_url="https://api.example.com", timeout=30) as client:
        data = await client.get_json("/things", params={"page": 1})
"""
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from scout_api.core.exceptions import ProviderError
from scout_api.core.logging import get_logger
from scout_api.core.metrics import record_provider_failure

logger = get_logger(__name__)


class BaseProviderClient:
    """
    Base class for provider API clients.

    Attributes:
        provider: Provider name used in errors, logs and metrics
        base_url: API root
        timeout: Per-request timeout in seconds
    """

    provider = "provider"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self.client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def request_json(
        self,
        method: str,
        url: str,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            ProviderError: On timeout, network failure, non-2xx status or invalid JSON
        """
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(timeout)
        try:
            response = await self._send(method, url, **kwargs)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            record_provider_failure(self.provider, f"http_{status}")
            logger.error(
                f"{self.provider} returned HTTP {status} for {url}",
                extra={"provider": self.provider, "status": status, "body": e.response.text[:500]},
            )
            raise ProviderError(self.provider, f"HTTP {status} for {url}", status_code=status) from e
        except httpx.TimeoutException as e:
            record_provider_failure(self.provider, "timeout")
            raise ProviderError(self.provider, f"Timed out requesting {url}") from e
        except httpx.RequestError as e:
            record_provider_failure(self.provider, "network")
            raise ProviderError(self.provider, f"Request to {url} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            record_provider_failure(self.provider, "invalid_json")
            raise ProviderError(self.provider, f"Invalid JSON from {url}") from e

    async def get_json(self, url: str, **kwargs) -> Any:
        return await self.request_json("GET", url, **kwargs)

    async def post_json(self, url: str, payload: Dict[str, Any], **kwargs) -> Any:
        return await self.request_json("POST", url, json=payload, **kwargs)
