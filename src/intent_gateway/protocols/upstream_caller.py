"""Upstream caller protocol.

The gateway does not know provider-specific request or response shapes.
It only consumes the success flag and the reported token count.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from intent_gateway.models import RetryPolicy


@dataclass(frozen=True)
class UpstreamResult:
    """Outcome of one upstream call."""

    success: bool
    data: Any = None
    error: str | None = None
    tokens_used: int = 0


@runtime_checkable
class UpstreamCaller(Protocol):
    """Protocol for calling an upstream text/image generation provider."""

    async def call(
        self,
        template: str,
        secret: str,
        payload: Any,
        retry_policy: RetryPolicy | None = None,
    ) -> UpstreamResult:
        """Call the provider behind a template.

        Args:
            template: The matched template name
            secret: The decrypted credential
            payload: The caller's payload, forwarded as-is
            retry_policy: Optional retry configuration of the credential

        Returns:
            UpstreamResult with success flag, data and token count
        """
        ...
