"""HTTP upstream caller.

Forwards the caller's payload to ``{base_url}/{template}`` with the
decrypted credential as a bearer token. Provider-specific request and
response shapes live behind that endpoint; the gateway only reads the
JSON body as response data and an optional ``tokens_used`` field.
"""

import asyncio
import logging
from typing import Any

import httpx

from intent_gateway.config import settings
from intent_gateway.models import RetryPolicy
from intent_gateway.protocols import UpstreamResult

logger = logging.getLogger(__name__)

# Retry only failures that may clear by themselves.
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class HttpUpstreamCaller:
    """httpx-based implementation of the UpstreamCaller protocol."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the caller.

        Args:
            base_url: Upstream base URL. Defaults to settings.upstream_base_url.
            timeout: Request timeout in seconds. Defaults to settings.upstream_timeout.
            client: Async HTTP client. If None, one is created on first use.
        """
        self._base_url = (base_url or settings.upstream_base_url).rstrip("/")
        self._timeout = timeout or settings.upstream_timeout
        self._client = client

    @classmethod
    def create(cls, base_url: str | None = None) -> "HttpUpstreamCaller":
        return cls(base_url=base_url)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    async def call(
        self,
        template: str,
        secret: str,
        payload: Any,
        retry_policy: RetryPolicy | None = None,
    ) -> UpstreamResult:
        retries = retry_policy.max_retries if retry_policy and retry_policy.retry_enabled else 0
        delay = (retry_policy.retry_backoff_ms if retry_policy else 0) / 1000

        attempt = 0
        while True:
            result, retryable = await self._call_once(template, secret, payload)
            if result.success or not retryable or attempt >= retries:
                return result

            attempt += 1
            logger.info("Retrying %s after failure (attempt %d/%d)", template, attempt, retries)
            await asyncio.sleep(delay)
            delay *= 2

    async def _call_once(self, template: str, secret: str, payload: Any) -> tuple[UpstreamResult, bool]:
        try:
            response = await self.client.post(
                f"{self._base_url}/{template}",
                json=payload,
                headers={"Authorization": f"Bearer {secret}"},
            )
        except httpx.HTTPError as e:
            return UpstreamResult(success=False, error=f"Request failed: {e}"), True

        if response.status_code >= 400:
            error = f"HTTP {response.status_code}: {response.text[:200]}"
            return UpstreamResult(success=False, error=error), response.status_code in RETRYABLE_STATUS

        try:
            data = response.json()
        except ValueError:
            return UpstreamResult(success=False, error="Upstream returned invalid JSON"), False

        tokens_used = _token_count(template, data.get("tokens_used") if isinstance(data, dict) else None)
        return UpstreamResult(success=True, data=data, tokens_used=tokens_used), False

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _token_count(template: str, value: Any) -> int:
    """Reported token usage as a non-negative int; anything else counts as 0."""
    if value is None:
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Ignoring non-numeric tokens_used from %s: %r", template, value)
        return 0
    if count < 0:
        logger.warning("Ignoring negative tokens_used from %s: %d", template, count)
        return 0
    return count
